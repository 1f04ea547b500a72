"""S3 utilities for the record store file."""

import os
import tempfile

import boto3
from botocore.exceptions import ClientError

# S3 client (reused across Lambda invocations)
_s3_client = None


def get_s3_client():
    """Get or create S3 client."""
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client('s3')
    return _s3_client


def download_file(bucket: str, key: str, local_path: str) -> bool:
    """Download a file from S3 to local path.

    Args:
        bucket: S3 bucket name
        key: S3 object key
        local_path: Local file path to save to

    Returns:
        True if successful, False if file doesn't exist
    """
    try:
        get_s3_client().download_file(bucket, key, local_path)
        return True
    except ClientError as e:
        if e.response['Error']['Code'] == '404':
            return False
        raise


def upload_file(bucket: str, local_path: str, key: str) -> None:
    """Upload a file from local path to S3.

    Args:
        bucket: S3 bucket name
        local_path: Local file path to upload
        key: S3 object key
    """
    get_s3_client().upload_file(local_path, bucket, key)


def file_exists(bucket: str, key: str) -> bool:
    """Check if a file exists in S3.

    Args:
        bucket: S3 bucket name
        key: S3 object key

    Returns:
        True if file exists
    """
    try:
        get_s3_client().head_object(Bucket=bucket, Key=key)
        return True
    except ClientError as e:
        if e.response['Error']['Code'] == '404':
            return False
        raise


def get_temp_path(filename: str = 'temp') -> str:
    """Get a temporary file path in Lambda's /tmp directory.

    Args:
        filename: Base filename

    Returns:
        Full path to temp file
    """
    return os.path.join(tempfile.gettempdir(), filename)
