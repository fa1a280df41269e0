"""
Listing photo storage.
Copies source photos into the R2 bucket so published listings do not hotlink the source.
"""

import logging
from typing import Optional

import boto3
import httpx
from botocore.client import Config

from ..config import (
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_PUBLIC_BASE_URL,
    R2_SECRET_ACCESS_KEY,
)

logger = logging.getLogger(__name__)

MAX_PHOTOS_PER_PROPERTY = 5


def get_r2_client():
    """Get configured boto3 client for Cloudflare R2"""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


def is_storage_configured() -> bool:
    return bool(R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY)


def photo_object_key(source_url: str, external_id: str, source: str = "bayut") -> str:
    """Object key for a re-hosted photo: {source}/{external_id}/{file}.{ext}"""
    name = source_url.split("?")[0].rstrip("/").split("/")[-1] or "photo"
    stem = name.rsplit(".", 1)[0] if "." in name else name
    extension = "png" if ".png" in source_url else "jpg"
    return f"{source}/{external_id}/{stem}.{extension}"


def public_url_for(key: str) -> str:
    if R2_PUBLIC_BASE_URL:
        return f"{R2_PUBLIC_BASE_URL.rstrip('/')}/{key}"
    return f"https://{R2_BUCKET_NAME}.{R2_ACCOUNT_ID}.r2.cloudflarestorage.com/{key}"


async def rehost_photo(
    http_client: httpx.AsyncClient,
    source_url: str,
    external_id: str,
    r2_client=None,
) -> Optional[str]:
    """
    Download a source photo and upload it to R2.

    Returns:
        Public URL of the stored copy, or None when download or upload failed
    """
    try:
        response = await http_client.get(source_url)
        if response.status_code != 200:
            logger.warning(f"⚠️ Photo download failed ({response.status_code}): {source_url}")
            return None

        key = photo_object_key(source_url, external_id)
        client = r2_client or get_r2_client()
        client.put_object(
            Bucket=R2_BUCKET_NAME,
            Key=key,
            Body=response.content,
            ContentType=response.headers.get("content-type", "image/jpeg"),
        )
        return public_url_for(key)
    except Exception as e:
        logger.error(f"❌ Photo rehost error for {source_url}: {e}")
        return None
