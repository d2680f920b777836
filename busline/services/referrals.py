from typing import List

from sqlalchemy import select as sa_select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from busline.models.models import Booking, Referral, PAID
from busline.services.audit import log_audit
from busline.services.errors import NotFoundError, ValidationError, transaction


class ReferralService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_referrals(self) -> List[Referral]:
        async with transaction(self.db):
            res = await self.db.execute(sa_select(Referral).order_by(Referral.name))
            return list(res.scalars().all())

    async def save(self, name: str, phone: str, referral_id: int = None, actor_id: int = None) -> Referral:
        try:
            async with transaction(self.db):
                if referral_id is None:
                    referral = Referral(name=name, phone=phone.strip())
                    self.db.add(referral)
                else:
                    referral = await self.db.get(Referral, referral_id)
                    if referral is None:
                        raise NotFoundError(f"Referral {referral_id} not found")
                    referral.name, referral.phone = name, phone.strip()
                await self.db.flush()
                await log_audit(self.db, actor_id=actor_id, action="save_referral", object_type="referral", object_id=str(referral.id), detail={"name": name, "phone": phone})
        except IntegrityError:
            raise ValidationError(f"A referral with phone {phone} already exists")
        return referral

    async def delete(self, referral_id: int, actor_id: int = None) -> bool:
        async with transaction(self.db):
            referral = await self.db.get(Referral, referral_id)
            if referral is None:
                return False
            await self.db.delete(referral)
            await log_audit(self.db, actor_id=actor_id, action="delete_referral", object_type="referral", object_id=str(referral_id))
        return True

    async def analytics(self) -> List[dict]:
        """Paid bookings attributed to each referral, busiest first."""
        stmt = (
            sa_select(Referral.id, Referral.name, Referral.phone, func.count(Booking.id))
            .outerjoin(Booking, (Booking.referral_id == Referral.id) & (Booking.status == PAID))
            .group_by(Referral.id, Referral.name, Referral.phone)
        )
        async with transaction(self.db):
            rows = (await self.db.execute(stmt)).all()
        stats = [{"referral_id": r[0], "name": r[1], "phone": r[2], "count": r[3]} for r in rows]
        return sorted(stats, key=lambda s: (-s["count"], s["name"]))

    async def referred_passengers(self, referral_id: int) -> List[str]:
        stmt = sa_select(Booking.name).where(Booking.referral_id == referral_id).where(Booking.status == PAID).order_by(Booking.created_at)
        async with transaction(self.db):
            return list((await self.db.execute(stmt)).scalars().all())
