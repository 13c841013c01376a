from sqlalchemy import Column, Integer, String, CheckConstraint
from invoicer.database import Base


class InvoiceCounter(Base):
    """Monotonic sequence used to mint invoice numbers.

    A single row keyed by ``settings.INVOICE_COUNTER_ID``, upserted on first
    allocation. The value only ever increases.
    """

    __tablename__ = "invoice_counters"
    __table_args__ = (
        CheckConstraint("sequence_value >= 0", name="ck_invoice_counters_non_negative"),
    )

    id = Column(String(50), primary_key=True)
    sequence_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<InvoiceCounter {self.id}={self.sequence_value}>"
