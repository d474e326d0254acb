from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fisio.db import get_db
from fisio.models import Identity
from fisio.schemas import CreateUserRequest, CreateUserResponse
from fisio.services.auth_service import get_optional_identity
from fisio.services import change_feed
from fisio.services.user_service import (
    create_user, UserValidationError, PermissionDeniedError, EmailExistsError, UserCreationError
)

# 원격 호출 가능한 백엔드 함수 (특권 작업)
router = APIRouter(prefix="/functions", tags=["functions"])


@router.post("/createUser", response_model=CreateUserResponse)
async def create_user_function(
    req: CreateUserRequest,
    db: AsyncSession = Depends(get_db),
    caller: Optional[Identity] = Depends(get_optional_identity),
):
    """
    새 identity 와 프로필을 생성한다.
    - 호출자 없음 (자가 등록): 비밀번호 필수
    - 호출자 있음: 역할 claim 이 terapeuta 여야 하며 비밀번호 없이 생성
    """
    try:
        identity = await create_user(db, req, caller)
    except UserValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except EmailExistsError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EmailExistsError.code)
    except UserCreationError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    await change_feed.publish("usuarios", identity.uid)
    return CreateUserResponse(uid=identity.uid)
