from sqlalchemy import Column, String, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from audience_api.database import Base
from audience_api.shared.models import AuditMixin

class Project(Base, AuditMixin):
    __tablename__ = "projects"

    name = Column(String, nullable=False)
    brand_description = Column(Text, nullable=True)
    product_description = Column(Text, nullable=True)
    native_language = Column(String(8), default="en", nullable=False)

    # Furthest stage the pipeline has unlocked; advanced on approval, rewound on revoke
    current_stage = Column(String, nullable=True)

    segments = relationship(
        "Segment",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Segment.order_index",
    )

class Segment(Base, AuditMixin):
    __tablename__ = "segments"

    project_id = Column(ForeignKey("projects.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    order_index = Column(Integer, default=0, nullable=False)

    project = relationship("Project", back_populates="segments")
