from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import the models so they register with Base
from simplr.models import task, team, team_member, team_invite, organization, organization_member  # noqa: E402,F401
