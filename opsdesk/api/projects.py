import structlog
from fastapi import APIRouter, Depends, HTTPException
from opsdesk.core.auth import get_tenant
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Project
from opsdesk.schemas.schemas import ProjectCreate, ProjectUpdate, ProjectResponse

router = APIRouter(prefix="/api/projects", tags=["projects"])

logger = structlog.get_logger(__name__)


@router.get("", response_model=list[ProjectResponse])
def list_projects(tenant: TenantContext = Depends(get_tenant)):
    return tenant.query(Project).order_by(Project.name).all()


@router.post("", response_model=ProjectResponse)
def create_project(data: ProjectCreate, tenant: TenantContext = Depends(get_tenant)):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Project name is required")
    project = Project(
        organization_id=tenant.org_id, name=name,
        description=data.description, base_price=data.base_price
    )
    tenant.db.add(project)
    commit_or_rollback(tenant.db, "create_project")
    tenant.db.refresh(project)
    logger.info("project_created", project_id=project.id, base_price=project.base_price)
    return project


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(project_id: str, tenant: TenantContext = Depends(get_tenant)):
    return tenant.get_or_404(Project, project_id, "Project")


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(project_id: str, data: ProjectUpdate, tenant: TenantContext = Depends(get_tenant)):
    project = tenant.get_or_404(Project, project_id, "Project")
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates and not (updates["name"] or "").strip():
        raise HTTPException(status_code=422, detail="Project name is required")
    # existing rates and task amounts keep their values
    for field, value in updates.items():
        setattr(project, field, value)
    commit_or_rollback(tenant.db, "update_project", project_id=project.id)
    tenant.db.refresh(project)
    return project


@router.delete("/{project_id}")
def delete_project(project_id: str, tenant: TenantContext = Depends(get_tenant)):
    project = tenant.get_or_404(Project, project_id, "Project")
    tenant.db.delete(project)
    commit_or_rollback(tenant.db, "delete_project", project_id=project_id)
    logger.info("project_deleted", project_id=project_id)
    return {"ok": True}
