from sqlalchemy import (
    Column,
    Index,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Document(Base):
    """One JSON document inside an owner-scoped collection."""
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)  # owner/{owner_id}/{path}
    doc_id = Column(String, primary_key=True)
    data_json = Column(Text, nullable=False)
    created_at_utc = Column(String, nullable=False)  # ISO 8601 string
    updated_at_utc = Column(String, nullable=False)  # ISO 8601 string

    __table_args__ = (
        Index("idx_documents_collection", "collection"),
    )


def create_all(engine_url: str) -> None:
    engine = create_engine(engine_url)
    Base.metadata.create_all(engine)
