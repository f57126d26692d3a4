# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from dacite import from_dict

# Values Airtable hands back for a field. Linked-record and lookup fields come
# back as lists of strings/numbers, attachment fields as lists of dicts.
FieldValue = Union[str, int, float, bool, List[Any], Dict[str, Any], None]
Fields = Dict[str, FieldValue]


@dataclass
class AttachmentRef:
    """A file linked into an attachment field."""

    url: str
    filename: str

    def as_dict(self) -> dict:
        return {"url": self.url, "filename": self.filename}


@dataclass
class Record:
    """One row of an external table."""

    id: str
    fields: Fields = field(default_factory=dict)
    created_time: Optional[str] = None

    @classmethod
    def from_api(cls, payload: dict) -> "Record":
        return from_dict(
            data_class=cls,
            data={
                "id": payload["id"],
                "fields": dict(payload.get("fields") or {}),
                "created_time": payload.get("createdTime"),
            },
        )

    def as_dict(self) -> dict:
        data: dict = {"id": self.id}
        if self.created_time:
            data["createdTime"] = self.created_time
        data["fields"] = self.fields
        return data


def as_number(value: Any, default: Any = 0) -> Any:
    """Numeric view of a field value; numeric text is parsed, anything else is ``default``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return default
    return default


def is_attachment_list(value: Any) -> bool:
    """True for a non-empty list whose entries all look like attachments."""
    return (
        isinstance(value, list)
        and len(value) > 0
        and all(isinstance(item, dict) and "url" in item for item in value)
    )


def attachments_from_field(value: Any) -> List[AttachmentRef]:
    """Parse an attachment field, ignoring the extra keys Airtable adds."""
    if not is_attachment_list(value):
        return []
    return [
        from_dict(
            data_class=AttachmentRef,
            data={"url": item["url"], "filename": item.get("filename", "")},
        )
        for item in value
    ]
