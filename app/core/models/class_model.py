"""Training class table. Sub-documents (rosters, schedule, notes, stop/restart periods) are stored as JSON text."""

from sqlalchemy import Boolean, Column, Date, DateTime, Index, Integer, String, Text, UniqueConstraint

from app.db.session import Base


class TrainingClass(Base):
    """One training class. Hard delete; class_code unique across all rows."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("class_code", name="uq_classes_class_code"),
        Index("idx_classes_client_id", "client_id"),
        Index("idx_classes_class_type", "class_type"),
        Index("idx_classes_class_agent", "class_agent"),
        Index("idx_classes_supervisor", "project_supervisor_id"),
        Index("idx_classes_start_date", "original_start_date"),
        Index("idx_classes_created_at", "created_at"),
    )

    class_id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, nullable=True)
    site_id = Column(String(50), nullable=True)
    class_address_line = Column(Text, nullable=True)
    class_type = Column(String(50), nullable=True)
    class_subject = Column(String(255), nullable=True)
    class_code = Column(String(100), nullable=False)
    class_duration = Column(Integer, nullable=True)  # days
    original_start_date = Column(Date, nullable=True)
    seta_funded = Column(Boolean, nullable=True, default=False)
    seta = Column(String(50), nullable=True)
    exam_class = Column(Boolean, nullable=True, default=False)
    exam_type = Column(String(100), nullable=True)
    qa_visit_dates = Column(Text, nullable=True)
    class_agent = Column(Integer, nullable=True)
    initial_class_agent = Column(Integer, nullable=True)
    initial_agent_start_date = Column(Date, nullable=True)
    project_supervisor_id = Column(Integer, nullable=True)
    delivery_date = Column(Date, nullable=True)

    # JSON text, e.g. "[1,2,3]"
    learner_ids = Column(Text, nullable=False, default="[]")
    backup_agent_ids = Column(Text, nullable=False, default="[]")
    # {"days": [...], "start_time": "09:00", "end_time": "16:00", "break_times": [...]}
    schedule_data = Column(Text, nullable=False, default="{}")
    # [{"stop_date": "...", "restart_date": "..."}]
    stop_restart_dates = Column(Text, nullable=False, default="[]")
    # [{"type": "...", "note": "...", "date": "...", "user": "..."}]
    class_notes_data = Column(Text, nullable=False, default="[]")

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
