"""
MinIO Object Store Connector
============================

Connector for the S3-compatible staging bucket the warehouse loads from.
Works against AWS S3 as well as MinIO.
"""

import logging
from typing import Dict, List, Optional

from minio import Minio

logger = logging.getLogger(__name__)


class MinIOConnector:
    """
    Object storage connector for export staging.
    """
    
    def __init__(self, config: Dict):
        """
        Initialize object store connector.
        
        Args:
            config: Connection configuration dict with endpoint, access_key, secret_key, bucket
        """
        self.config = config
        self.client = None
        self.bucket = config["bucket"]
    
    def connect(self):
        """Create the client and ensure the export bucket exists."""
        self.client = Minio(
            endpoint=self.config.get("endpoint", "s3.amazonaws.com"),
            access_key=self.config["access_key"],
            secret_key=self.config["secret_key"],
            secure=self.config.get("secure", True),
            region=self.config.get("region")
        )
        
        if not self.client.bucket_exists(bucket_name=self.bucket):
            self.client.make_bucket(bucket_name=self.bucket)
            logger.info(f"Created bucket: {self.bucket}")
        
        logger.info(f"Connected to object store: {self.config.get('endpoint', 's3.amazonaws.com')}, bucket: {self.bucket}")
    
    def list_objects(self, prefix: str = "", recursive: bool = True) -> List[str]:
        """
        List objects in bucket.
        
        Args:
            prefix: Object prefix filter
            recursive: Include nested objects
            
        Returns:
            List of object names
        """
        objects = self.client.list_objects(bucket_name=self.bucket, prefix=prefix, recursive=recursive)
        return [obj.object_name for obj in objects]
    
    def delete_prefix(self, prefix: str) -> int:
        """
        Delete every object whose name starts with prefix.
        
        Returns:
            Number of objects deleted
        """
        names = self.list_objects(prefix=prefix)
        for name in names:
            self.client.remove_object(bucket_name=self.bucket, object_name=name)
            logger.debug(f"Deleted: s3://{self.bucket}/{name}")
        return len(names)
    
    def upload_file(
        self,
        object_name: str,
        file_path: str,
        acl: Optional[str] = None,
        content_type: str = "application/octet-stream"
    ) -> str:
        """
        Upload a local file.
        
        Args:
            object_name: Target key in bucket
            file_path: Local file to upload
            acl: Canned ACL applied to the object
            content_type: Object content type
            
        Returns:
            Full object URI
        """
        metadata = {"x-amz-acl": acl} if acl else None
        self.client.fput_object(
            bucket_name=self.bucket,
            object_name=object_name,
            file_path=file_path,
            content_type=content_type,
            metadata=metadata
        )
        logger.info(f"Uploaded {file_path} to s3://{self.bucket}/{object_name}")
        return f"s3://{self.bucket}/{object_name}"
