"""
附加服务目录路由模块
"""

from typing import Optional

from fastapi import APIRouter, Depends

from ..deps import get_addon_service, require_admin
from ...core.error_handler import create_success_response
from ...schemas.addon import AddonCreateRequest, AddonUpdateRequest
from ...schemas.common import ERROR_RESPONSES
from ...services.addon_service import AddonService

router = APIRouter(responses=ERROR_RESPONSES)


@router.get("")
def list_addons(active: Optional[bool] = True, category: Optional[str] = None,
                addons: AddonService = Depends(get_addon_service)):
    """附加服务列表，默认只返回上架的"""
    items = addons.list_addons(active=active, category=category)
    return create_success_response([a.to_api() for a in items])


@router.get("/{addon_id}")
def get_addon(addon_id: str, addons: AddonService = Depends(get_addon_service)):
    return create_success_response(addons.get_addon(addon_id).to_api())


@router.post("", dependencies=[Depends(require_admin)])
def create_addon(req: AddonCreateRequest, addons: AddonService = Depends(get_addon_service)):
    return create_success_response(addons.create_addon(req).to_api(), "Add-on created")


@router.put("/{addon_id}", dependencies=[Depends(require_admin)])
def update_addon(addon_id: str, req: AddonUpdateRequest,
                 addons: AddonService = Depends(get_addon_service)):
    return create_success_response(addons.update_addon(addon_id, req).to_api(), "Add-on updated")


@router.delete("/{addon_id}", dependencies=[Depends(require_admin)])
def delete_addon(addon_id: str, addons: AddonService = Depends(get_addon_service)):
    addons.delete_addon(addon_id)
    return create_success_response(message="Add-on deleted")
