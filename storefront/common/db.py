from sqlalchemy.orm import DeclarativeBase

# Largest value an INTEGER column holds
INTEGER_MAX = 2**63 - 1


class Base(DeclarativeBase):
    """Declarative base shared by every storefront table."""
    pass
