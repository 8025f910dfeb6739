"""
Bundled license limits.

The limits ship with the package as a read-only embedded item. Going over a
limit never blocks anything: it logs a warning carrying ``licenseStatus`` that
the notifier pushes on the ``license`` channel.
"""

from __future__ import annotations

import json
import logging
from typing import Dict

from pydantic import Field

from ..core.consts import EXT_JSON, KEY_LICENSE, LICENSE_STATUS_FIELD
from ..store import EmbedDataRW, Model
from .common import StoreItem

logger = logging.getLogger(__name__)

LICENSE_OPERATION = "operation"
LICENSE_DATASOURCE = "datasource"
LICENSE_IMPORT = "import"

LICENSE_STATUS_EMPTY = "empty"
UNLIMITED = -1

DEFAULT_LICENSE = json.dumps(
    {
        "type": "community",
        "defaultLimits": {LICENSE_OPERATION: 888, LICENSE_DATASOURCE: 18, LICENSE_IMPORT: UNLIMITED},
        "wsPushRequired": [LICENSE_OPERATION, LICENSE_DATASOURCE],
    }
)


class License(StoreItem):
    type: str = "community"
    default_limits: Dict[str, int] = Field(default_factory=dict)
    ws_push_required: list[str] = Field(default_factory=list)

    def limit(self, module: str) -> int:
        return self.default_limits.get(module, UNLIMITED)


def build_license_model(content: str = DEFAULT_LICENSE) -> Model[License]:
    return Model(KEY_LICENSE, "", EXT_JSON, EmbedDataRW(KEY_LICENSE, content), License)


def check_limit(model: Model[License], module: str, amount: int = 1) -> bool:
    """Return True when ``amount`` exceeds the limit of ``module``; pushed modules log a warning."""
    info = model.first()
    if info is None:
        return False
    limit = info.limit(module)
    if limit == UNLIMITED or amount <= limit:
        return False
    if module in info.ws_push_required:
        logger.warning(
            f"{module} amount {amount} is over the license limit {limit}",
            extra={LICENSE_STATUS_FIELD: {"function": module, "limits": limit, "cause": LICENSE_STATUS_EMPTY}},
        )
    return True
