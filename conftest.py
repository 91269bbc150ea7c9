# Keeps the repository root importable when the test suite runs from a checkout.
