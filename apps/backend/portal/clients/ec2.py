"""EC2: теги и запуск/остановка инстансов (boto3, в отдельном потоке)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from portal.core.errors import ConfigurationError, ExecutionError

logger = logging.getLogger(__name__)

EC2_API_ERROR = "Error when calling the AWS API. Please create an issue"


class Ec2Client:
    def __init__(self, region: str, client: Optional[Any] = None) -> None:
        self.region = region
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            if not self.region:
                logger.warning("AWS_REGION not configured")
                raise ConfigurationError()
            self._client = boto3.client("ec2", region_name=self.region)
        return self._client

    async def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        method = getattr(self.client, operation)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            logger.error("EC2 call failed operation=%s error=%s", operation, exc)
            raise ExecutionError(EC2_API_ERROR) from exc

    async def get_tags(self, instance_id: str) -> dict[str, list[str]]:
        resp = await self._call("describe_tags", Filters=[{"Name": "resource-id", "Values": [instance_id]}])
        tags: dict[str, list[str]] = {}
        for tag in resp.get("Tags", []):
            tags.setdefault(tag["Key"], []).append(tag.get("Value", ""))
        return tags

    async def start(self, instance_id: str) -> None:
        await self._call("start_instances", InstanceIds=[instance_id])
        logger.info("EC2 instance start initiated instance=%s", instance_id)

    async def stop(self, instance_id: str) -> None:
        await self._call("stop_instances", InstanceIds=[instance_id])
        logger.info("EC2 instance stop initiated instance=%s", instance_id)
