from adapters.local.json_database import JsonFileDatabase
from adapters.local.file_storage import FileSystemStorage

__all__ = [
    "JsonFileDatabase",
    "FileSystemStorage",
]
