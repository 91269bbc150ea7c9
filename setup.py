from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="directory-membership-tools",
    version="0.1.0",
    author="LSA Technology Services",
    author_email="lsats@umich.edu",
    description="Nested group membership resolution and comparison for Active Directory",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
    ],
    python_requires=">=3.8",
    install_requires=[
        "ldap3>=2.9.0",
        "keyring>=23.0.0",
        "pandas>=1.0.0",
        "python-dotenv>=0.15.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            # Membership scripts
            "user-group-closure=scripts.membership.user_group_closure:main",
            "compare-user-groups=scripts.membership.compare_user_groups:main",
            "group-info=scripts.membership.group_info:main",
            "user-info=scripts.membership.user_info:main",
        ],
    },
)
