from adapters.aws.dynamodb_database import DynamoDBDatabase
from adapters.aws.s3_storage import S3Storage

__all__ = [
    "DynamoDBDatabase",
    "S3Storage",
]
