from .serde_base import SerdeBase


class FileInfoResponse(SerdeBase):
    name: str
    size: int
    type: str
    extension: str
    path: str
    url: str
