class ConversionError(Exception):
    """Base class for errors that abort a conversion run."""


class InputFileError(ConversionError):
    """The export file does not exist or cannot be read."""


class MalformedExportError(ConversionError):
    """The export file is not a document of the expected shape."""


class OutputDirectoryError(ConversionError):
    """The output directory cannot be created or written to."""
