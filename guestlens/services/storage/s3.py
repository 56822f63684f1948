"""S3 storage service for photo uploads and downloads."""
import boto3
from botocore.client import Config
from botocore.exceptions import ClientError, BotoCoreError
from typing import Optional, Dict, List, Any
import logging

from guestlens.app.config import settings
from guestlens.services.storage.base import ObjectStore, StoredObject

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ('404', 'NoSuchKey', 'NotFound')


class S3ServiceError(Exception):
    """Custom exception for S3 service errors."""
    pass


class S3Service(ObjectStore):
    """boto3 backed object store (AWS S3 or any S3 compatible endpoint)."""

    def __init__(self, bucket_name: Optional[str] = None, client: Any = None):
        """Initialize S3 client with configuration."""
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME
        if client is not None:
            self.s3_client = client
            return
        try:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
                region_name=settings.S3_REGION,
                endpoint_url=settings.S3_ENDPOINT_URL,
                config=Config(
                    signature_version='s3v4',
                    # custom endpoints (R2, MinIO) want path style
                    s3={'addressing_style': 'path' if settings.S3_ENDPOINT_URL else 'virtual'}
                )
            )
            logger.info(f"S3 Service initialized for bucket: {self.bucket_name}")
        except (BotoCoreError, ValueError) as e:
            logger.error(f"Failed to initialize S3 client: {e}")
            raise S3ServiceError(f"S3 initialization failed: {str(e)}")

    @staticmethod
    def _error_code(e: ClientError) -> str:
        return str(e.response.get('Error', {}).get('Code', ''))

    def sign_put(self, key: str, ttl: int, content_type: str) -> str:
        """
        Generate presigned PUT URL for direct upload.

        Args:
            key: S3 object key
            ttl: URL expiration in seconds
            content_type: MIME type the client must send

        Returns:
            Presigned upload URL

        Raises:
            S3ServiceError: If URL generation fails
        """
        try:
            url = self.s3_client.generate_presigned_url(
                'put_object',
                Params={
                    'Bucket': self.bucket_name,
                    'Key': key,
                    'ContentType': content_type
                },
                ExpiresIn=ttl
            )
            logger.debug(f"Generated PUT presigned URL for: {key}")
            return url
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error generating presigned URL: {e}")
            raise S3ServiceError(f"Failed to generate upload URL: {str(e)}")

    def sign_get(
        self,
        key: str,
        ttl: int,
        filename: Optional[str] = None,
        inline: bool = False
    ) -> str:
        """
        Generate presigned URL for download.

        Args:
            key: S3 object key
            ttl: URL expiration in seconds
            filename: Optional filename for Content-Disposition header
            inline: If True, display in browser; if False, force download

        Returns:
            Presigned download URL
        """
        try:
            params = {
                'Bucket': self.bucket_name,
                'Key': key
            }

            if filename:
                safe_name = filename.replace('"', '')
                disposition = 'inline' if inline else 'attachment'
                params['ResponseContentDisposition'] = f'{disposition}; filename="{safe_name}"'

            url = self.s3_client.generate_presigned_url(
                'get_object',
                Params=params,
                ExpiresIn=ttl
            )
            logger.debug(f"Generated download URL for: {key}")
            return url
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error generating download URL: {e}")
            raise S3ServiceError(f"Failed to generate download URL: {str(e)}")

    def head(self, key: str) -> bool:
        """Check if object exists in S3."""
        try:
            self.s3_client.head_object(
                Bucket=self.bucket_name,
                Key=key
            )
            return True
        except ClientError as e:
            if self._error_code(e) in NOT_FOUND_CODES:
                return False
            logger.error(f"Error checking object existence: {e}")
            raise S3ServiceError(f"Failed to check object: {str(e)}")
        except BotoCoreError as e:
            raise S3ServiceError(f"Failed to check object: {str(e)}")

    def get(self, key: str) -> StoredObject:
        """
        Download object and return its bytes.

        Raises:
            S3ServiceError: If download fails or the object is missing
        """
        try:
            response = self.s3_client.get_object(
                Bucket=self.bucket_name,
                Key=key
            )
            data = response['Body'].read()
            logger.debug(f"Downloaded {len(data)} bytes from: {key}")
            return StoredObject(
                data=data,
                content_type=response.get('ContentType') or 'application/octet-stream',
            )
        except ClientError as e:
            if self._error_code(e) in NOT_FOUND_CODES:
                raise S3ServiceError(f"Object not found: {key}")
            logger.error(f"Error downloading file: {e}")
            raise S3ServiceError(f"Failed to download file: {str(e)}")
        except BotoCoreError as e:
            raise S3ServiceError(f"Failed to download file: {str(e)}")

    def put(self, key: str, data: bytes, content_type: str = 'application/octet-stream') -> None:
        """Upload bytes directly to S3."""
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type
            )
            logger.info(f"Uploaded {len(data)} bytes to: {key}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading file: {e}")
            raise S3ServiceError(f"Failed to upload file: {str(e)}")

    def delete(self, key: str) -> None:
        """Delete object from S3."""
        try:
            self.s3_client.delete_object(
                Bucket=self.bucket_name,
                Key=key
            )
            logger.info(f"Deleted S3 object: {key}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting object: {e}")
            raise S3ServiceError(f"Failed to delete object: {str(e)}")

    def list(self, prefix: str) -> List[Dict[str, Any]]:
        """
        List every object under a prefix, following continuation pages.

        Returns:
            List of object dicts with key, size, last_modified
        """
        objects = []
        try:
            paginator = self.s3_client.get_paginator('list_objects_v2')
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                objects.extend(
                    {
                        'key': obj['Key'],
                        'size': obj['Size'],
                        'last_modified': obj['LastModified'],
                    }
                    for obj in page.get('Contents', [])
                )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing objects under {prefix}: {e}")
            raise S3ServiceError(f"Failed to list objects: {str(e)}")
        logger.debug(f"Listed {len(objects)} objects with prefix: {prefix}")
        return objects


_store: Optional[ObjectStore] = None


def get_object_store() -> ObjectStore:
    """FastAPI dependency returning the process-wide store (created lazily)."""
    global _store
    if _store is None:
        _store = S3Service()
    return _store
