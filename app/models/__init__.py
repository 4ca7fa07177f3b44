from app.db.base_class import Base
from app.models.distribution import Distribution
from app.models.custom_domain import CustomDomain, DomainStatus
