"""Fixed catalog of S3 API operations the generator can emit."""

from dataclasses import dataclass


@dataclass(frozen=True)
class OperationInfo:
    name: str
    method: str
    has_bucket: bool
    has_object: bool


OPERATIONS: tuple[OperationInfo, ...] = (
    OperationInfo("GetObject", "GET", True, True),
    OperationInfo("PutObject", "PUT", True, True),
    OperationInfo("DeleteObject", "DELETE", True, True),
    OperationInfo("HeadObject", "HEAD", True, True),
    OperationInfo("CopyObject", "PUT", True, True),
    OperationInfo("ListParts", "GET", True, True),
    OperationInfo("CreateMultipartUpload", "POST", True, True),
    OperationInfo("UploadPart", "PUT", True, True),
    OperationInfo("CompleteMultipartUpload", "POST", True, True),
    OperationInfo("AbortMultipartUpload", "DELETE", True, True),
    OperationInfo("ListBuckets", "GET", False, False),
    OperationInfo("ListObjectsV2", "GET", True, False),
    OperationInfo("ListObjectsV1", "GET", True, False),
    OperationInfo("CreateBucket", "PUT", True, False),
    OperationInfo("DeleteBucket", "DELETE", True, False),
    OperationInfo("HeadBucket", "HEAD", True, False),
)

OPERATION_NAMES = frozenset(op.name for op in OPERATIONS)

_BY_NAME = {op.name: op for op in OPERATIONS}


def get_operation(name: str) -> OperationInfo:
    return _BY_NAME[name]
