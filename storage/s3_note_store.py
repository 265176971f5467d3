"""Note store backed by an S3 bucket prefix."""
import logging
from typing import List

import boto3
from botocore.exceptions import ClientError

from storage.note_store import NoteNotFoundError, NoteStore, join_path

logger = logging.getLogger(__name__)


class S3NoteStore(NoteStore):
    """Notes stored as objects below a bucket prefix (e.g. an S3-synced vault)."""

    def __init__(self, bucket: str, prefix: str = ''):
        """
        Initialize S3 client and key prefix.

        Args:
            bucket: Name of the S3 bucket
            prefix: Key prefix all note paths are relative to
        """
        self.bucket = bucket
        self.prefix = prefix.strip('/')
        self.s3 = boto3.client('s3')
        logger.info(f"Initialized S3NoteStore for bucket: {bucket}/{self.prefix}")

    def read(self, path: str) -> str:
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=self._key(path))
            return response['Body'].read().decode('utf-8')
        except ClientError as e:
            if e.response['Error']['Code'] in ('NoSuchKey', '404'):
                raise NoteNotFoundError(f"Note not found: {path}") from e
            logger.error(f"Error reading {path} from S3: {e}")
            raise

    def write(self, path: str, text: str) -> None:
        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=self._key(path),
                Body=text.encode('utf-8'),
                ContentType='text/markdown; charset=utf-8'
            )
        except ClientError as e:
            logger.error(f"Error writing {path} to S3: {e}")
            raise

    def rename(self, old_path: str, new_path: str) -> None:
        if not self.exists(old_path):
            raise NoteNotFoundError(f"Note not found: {old_path}")
        if self.exists(new_path):
            raise FileExistsError(f"Destination already exists: {new_path}")

        try:
            self.s3.copy_object(
                Bucket=self.bucket,
                Key=self._key(new_path),
                CopySource={'Bucket': self.bucket, 'Key': self._key(old_path)}
            )
        except ClientError as e:
            logger.error(f"Error copying {old_path} to {new_path} in S3: {e}")
            raise

        try:
            self.s3.delete_object(Bucket=self.bucket, Key=self._key(old_path))
        except ClientError as e:
            logger.error(f"Error removing {old_path} after copy in S3, rolling back: {e}")
            # Drop the copy so the note exists at exactly one path
            self.s3.delete_object(Bucket=self.bucket, Key=self._key(new_path))
            raise

    def exists(self, path: str) -> bool:
        try:
            self.s3.head_object(Bucket=self.bucket, Key=self._key(path))
            return True
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey', 'NotFound'):
                return False
            logger.error(f"Error checking {path} in S3: {e}")
            raise

    def list_notes(self, folder: str) -> List[str]:
        folder_prefix = self._key(folder).rstrip('/') + '/'
        notes = []

        try:
            paginator = self.s3.get_paginator('list_objects_v2')
            pages = paginator.paginate(
                Bucket=self.bucket,
                Prefix=folder_prefix,
                Delimiter='/'
            )
            for page in pages:
                for item in page.get('Contents', []):
                    name = item['Key'][len(folder_prefix):]
                    if name.endswith('.md'):
                        notes.append(join_path(folder, name))
        except ClientError as e:
            logger.error(f"Error listing {folder} in S3: {e}")
            raise

        return sorted(notes)

    def ensure_folder(self, path: str) -> None:
        # S3 has no real folders; keys create them implicitly
        return None

    def _key(self, path: str) -> str:
        return join_path(self.prefix, path)
