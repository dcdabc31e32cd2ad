import asyncio
from audience_api.database import engine, Base

# Import all models to ensure they are registered in Base.metadata
from audience_api.projects.models import Project, Segment
from audience_api.drafts.models import DraftRow
from audience_api.approvals.models import ApprovedRecord
from audience_api.audit.models import AuditEvent
from audience_api.translation.models import TranslationCacheEntry

async def init_models():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created.")

if __name__ == "__main__":
    asyncio.run(init_models())
