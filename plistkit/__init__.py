"""Read and write property lists in XML and OpenStep, GNUstep and defaults text formats."""

__version__ = "0.1.0"
__all__ = [
    "values",
    "numeric",
    "charsets",
    "text_generator",
    "text_parser",
    "xml_generator",
    "xml_parser",
    "marshal",
    "unmarshal",
]