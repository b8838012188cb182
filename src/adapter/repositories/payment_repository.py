"""SQLAlchemy Payment Repository Implementation"""

from typing import Optional
from datetime import datetime
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.payment_repository import PaymentRepository
from src.domain.payment import Payment


class SqlAlchemyPaymentRepository(PaymentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_checkout_session_id(self, session_id: str) -> Optional[Payment]:
        statement = select(Payment).where(Payment.gateway_checkout_session_id == session_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def update(self, payment: Payment) -> Payment:
        payment.updated_at = datetime.utcnow()
        self.session.add(payment)
        await self.session.flush()
        await self.session.refresh(payment)
        return payment
