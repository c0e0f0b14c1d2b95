# discordsync/resources/registry.py
"""Resource registry: kind -> resource class."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Type

from ..core.directory import RemoteDirectory
from .base import BaseResource
from .channel import ChannelResource
from .member_nick import MemberNickResource
from .member_roles import MemberRolesResource

RESOURCE_TYPES: Dict[str, Type[BaseResource]] = {
    MemberRolesResource.kind: MemberRolesResource,
    MemberNickResource.kind: MemberNickResource,
    ChannelResource.kind: ChannelResource,
}


def build_resources(
    directory: RemoteDirectory,
    logger: Optional[logging.LoggerAdapter] = None,
) -> Dict[str, BaseResource]:
    return {kind: cls(directory, logger=logger) for kind, cls in RESOURCE_TYPES.items()}
