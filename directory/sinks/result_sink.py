import logging
import os
import sys
from abc import ABC, abstractmethod
from typing import Optional, TextIO

import pandas as pd

logger = logging.getLogger(__name__)


class ResultSink(ABC):
    """Abstract destination for a tabular result set."""

    @abstractmethod
    def write(self, frame: pd.DataFrame, title: Optional[str] = None) -> None:
        """Persist or display a result frame."""
        pass


class CsvResultSink(ResultSink):
    """
    Write result frames to a CSV file.

    An existing file is only replaced when ``overwrite`` is set; otherwise
    FileExistsError is raised before anything is written.
    """

    def __init__(self, path: str, overwrite: bool = False, encoding: str = "utf-8"):
        self.path = path
        self.overwrite = overwrite
        self.encoding = encoding

    def write(self, frame: pd.DataFrame, title: Optional[str] = None) -> None:
        if os.path.exists(self.path) and not self.overwrite:
            raise FileExistsError(f"Output file already exists: {self.path}")

        output_dir = os.path.dirname(self.path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)

        frame.to_csv(self.path, index=False, encoding=self.encoding)
        logger.info(f"Wrote {len(frame)} rows to {self.path}")


class ConsoleResultSink(ResultSink):
    """Print result frames as plain text tables."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def write(self, frame: pd.DataFrame, title: Optional[str] = None) -> None:
        if title:
            print(f"\n{title}", file=self.stream)
            print("=" * len(title), file=self.stream)

        if frame.empty:
            print("(no rows)", file=self.stream)
        else:
            print(frame.to_string(index=False), file=self.stream)
        print(f"\n{len(frame)} rows", file=self.stream)
