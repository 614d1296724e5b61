"""
Data Model

Data point definitions, REST wire shapes, and the webhook message union.
Wire shapes are decoded with from_dict() and encoded with to_dict().
"""

import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Union

from .exceptions import DataPointError


class DataType(str, Enum):
    """Data point types accepted by the REST server"""
    BOOL = "Bool"
    INT8 = "Int8"
    INT16 = "Int16"
    INT32 = "Int32"
    INT64 = "Int64"
    UINT8 = "Uint8"
    UINT16 = "Uint16"
    UINT32 = "Uint32"
    UINT64 = "Uint64"
    FLOAT = "Float"
    DOUBLE = "Double"
    ENUM = "Enum"
    STRING = "String"
    JSON = "JSON"
    TAG = "Tag"


class Quality(IntEnum):
    """Quality code written alongside a value"""
    BAD = 0
    GOOD = 192
    GOOD_LOCAL_OVERRIDE = 216
    GOOD_EXTENDED = 131264
    STALE = 64
    MINIMUM_OUT_OF_RANGE = 65
    MAXIMUM_OUT_OF_RANGE = 66
    FROZEN = 67
    INVALID_FACTOR_OFFSET = 68
    SET_ITEM_INACTIVE = 28
    COMMUNICATION_FAILURE = 24
    UNABLE_TO_PARSE = 4
    DEVICE_NOT_CONNECTED = 8
    BAD_QUALITY_NO_DATA = 2097152


def _flag(value: bool) -> str:
    return "true" if value else "false"


@dataclass(frozen=True)
class DataPointDefinition:
    """Immutable definition of a data point to register"""
    topic: str
    display_name: str
    data_type: DataType
    unit: str = "NONE"
    default_value: str = "0"
    is_input: bool = False
    is_output: bool = True
    short_display_name: str = ""

    def __post_init__(self):
        if not isinstance(self.data_type, DataType):
            try:
                object.__setattr__(self, "data_type", DataType(self.data_type))
            except ValueError:
                valid = ", ".join(t.value for t in DataType)
                raise DataPointError(
                    f"Invalid data type: {self.data_type}. Must be one of: {valid}",
                    topic=self.topic,
                )
        if not self.short_display_name:
            # Short identifier derived from the millisecond clock
            unique_id = int(time.time() * 1000) % 100000
            object.__setattr__(self, "short_display_name", f"dp_{unique_id:05d}")

    def to_dict(self) -> dict[str, Any]:
        """Registration payload for this data point"""
        return {
            "topic": self.topic,
            "defaultValue": self.default_value,
            "tagSubClass": "diagnostics",
            "metadata": {
                "dataType": self.data_type.value,
                "unit": self.unit,
                "min": "0",
                "max": "9999999",
                "noProtobuf": "false",
                "builtinEnums": "",
                "isInput": _flag(self.is_input),
                "isOutput": _flag(self.is_output),
                "arraySize": "1",
            },
            "unityUI": {
                "displayName": self.display_name,
                "shortDisplayName": self.short_display_name,
                "displayMin": "10",
                "displayMax": "40",
                "uiSize": "2",
                "configGroup": "Grouped Rest Items",
                "configSection": "Rest Tags",
            },
        }


@dataclass
class ReadValue:
    """One entry of a /message/read response"""
    topic: str | None
    value: Any = None

    @classmethod
    def from_dict(cls, data: dict) -> "ReadValue":
        return cls(topic=data.get("topic"), value=data.get("value"))


@dataclass
class AdvancedDataPoint:
    """Datapoint inside an advanced read response"""
    data_point_name: str = ""
    quality: int = 0
    time_stamps: list[str] = field(default_factory=list)
    values: list[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "AdvancedDataPoint":
        return cls(
            data_point_name=data.get("dataPointName") or "",
            quality=int(data.get("quality") or 0),
            time_stamps=list(data.get("timeStamps") or []),
            values=list(data.get("values") or []),
        )

    def first_value(self) -> Any:
        return self.values[0] if self.values else None


@dataclass
class AdvancedReading:
    """One entry of a /message/read-advanced response"""
    topic: str = ""
    msg_source: str = ""
    datapoints: list[AdvancedDataPoint] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "AdvancedReading":
        return cls(
            topic=data.get("topic") or "",
            msg_source=data.get("msgSource") or "",
            datapoints=[
                AdvancedDataPoint.from_dict(dp) for dp in data.get("datapoints") or []
            ],
        )

    def find(self, data_point_name: str) -> AdvancedDataPoint | None:
        for datapoint in self.datapoints:
            if datapoint.data_point_name == data_point_name:
                return datapoint
        return None


@dataclass
class ProvisionStatus:
    """Response of GET /app-provision/{app}"""
    has_new_config: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "ProvisionStatus":
        return cls(has_new_config=bool(data.get("hasNewConfig", False)))


@dataclass
class ValidationMessage:
    """Server-side validation detail for a data point"""
    type: str = ""
    display_area: str = ""
    display_field: str = ""
    guid: str = ""
    target_field: str = ""
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ValidationMessage":
        return cls(
            type=data.get("Type") or "",
            display_area=data.get("DisplayArea") or "",
            display_field=data.get("DisplayField") or "",
            guid=data.get("GUID") or "",
            target_field=data.get("TargetField") or "",
            message=data.get("Message") or "",
        )


@dataclass
class RegistrationItem:
    """Per-point result inside a registration response's content"""
    result: str | None = None
    guid: str | None = None
    full_data_point_name: str | None = None
    messages: list[ValidationMessage] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "RegistrationItem":
        return cls(
            result=data.get("Result"),
            guid=data.get("Guid"),
            full_data_point_name=data.get("FullDataPointName"),
            messages=[ValidationMessage.from_dict(m) for m in data.get("Messages") or []],
        )


@dataclass
class WriteRequest:
    """One value in a /message/write batch"""
    topic: str
    value: Any
    time_stamp: str
    quality: Quality = Quality.GOOD
    msg_source: str = "REST"

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "value": self.value,
            "msgSource": self.msg_source,
            "quality": int(self.quality),
            "timeStamp": self.time_stamp,
        }


@dataclass(frozen=True)
class SimpleMessage:
    """Webhook payload carrying a single value"""
    topic: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: dict) -> "SimpleMessage":
        return cls(topic=data.get("topic") or "", value=data.get("value"))


@dataclass(frozen=True)
class AdvancedMessage:
    """Webhook payload carrying datapoints with metadata"""
    topic: str
    datapoints: tuple[AdvancedDataPoint, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "AdvancedMessage":
        reading = AdvancedReading.from_dict(data)
        return cls(topic=reading.topic, datapoints=tuple(reading.datapoints))

    def first_value(self) -> Any:
        """First value of the first datapoint, or None"""
        if not self.datapoints:
            return None
        return self.datapoints[0].first_value()


WebhookMessage = Union[SimpleMessage, AdvancedMessage]
