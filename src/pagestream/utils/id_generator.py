import uuid
from datetime import UTC, datetime


def new_document_id() -> str:
    return f"DOC-{datetime.now(UTC).strftime('%Y%m%d')}-{uuid.uuid4().hex[:12]}"
