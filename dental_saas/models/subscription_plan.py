from sqlalchemy import Column, Integer, String, Text

from dental_saas.core.database import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    # Em centavos, por dentista.
    price_per_dentist = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="brl")
    stripe_price_id = Column(String, unique=True, index=True, nullable=False)
