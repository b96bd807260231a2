"""
适配器共享工具函数
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

DONE_SENTINEL = "[DONE]"


@dataclass
class SSEFrame:
    """一个 SSE 事件：event 名 + 拼接后的 data"""

    event: str | None
    data: str

    def json(self) -> Any:
        return json.loads(self.data)


def parse_sse_frame(frame: bytes) -> SSEFrame | None:
    """解析一个完整的 SSE 事件

    - 多行 data 以换行拼接
    - 以冒号开头的注释行被忽略
    - 无 data 的帧（仅 event 名、keep-alive）返回 None

    Raises:
        UnicodeDecodeError: 帧不是合法 UTF-8
    """
    event: str | None = None
    data_lines: list[str] = []

    for line in frame.decode("utf-8").split("\n"):
        if not line or line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event = value
        elif name == "data":
            data_lines.append(value)

    if not data_lines:
        return None
    return SSEFrame(event=event, data="\n".join(data_lines))
