from fastapi import APIRouter, HTTPException, Depends

from audience_api.projects.dependencies import require_project
from audience_api.projects.models import Project
from audience_api.shared.exceptions import PipelineError
from audience_api.shared.http import http_error
from audience_api.translation.dependencies import get_translation_service
from audience_api.translation.schemas import TranslateRequest, TranslateResponse
from audience_api.translation.service import TranslationService

router = APIRouter(prefix="/projects", tags=["translation"])


@router.post("/{project_id}/translate", response_model=TranslateResponse)
async def translate_content(
    request: TranslateRequest,
    project: Project = Depends(require_project),
    service: TranslationService = Depends(get_translation_service),
):
    scope_id = request.scope_id or str(project.id)
    try:
        if request.keys is not None:
            if not isinstance(request.content, dict):
                raise HTTPException(status_code=400, detail="keys requires object content")
            result = await service.translate_subset(
                request.content,
                request.keys,
                request.target_language,
                scope_id,
                native_language=project.native_language,
            )
        else:
            result = await service.translate(
                request.content,
                request.target_language,
                scope_id,
                native_language=project.native_language,
            )
    except PipelineError as e:
        raise http_error(e)

    return TranslateResponse(
        language=request.target_language,
        native_language=project.native_language,
        result=result,
    )
