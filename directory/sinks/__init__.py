from .result_sink import ConsoleResultSink, CsvResultSink, ResultSink

__all__ = ['ResultSink', 'CsvResultSink', 'ConsoleResultSink']
