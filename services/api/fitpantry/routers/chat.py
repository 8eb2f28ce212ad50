from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from .. import schemas
from ..deps import get_db, get_current_user
from ..infra.rate_limit import limiter
from ..models import User
from ..services import conversation_service
from ..services.assistant_service import AssistantService, assistant_service
from ..settings import settings

router = APIRouter(prefix="/chat", tags=["chat"])


def get_assistant_service() -> AssistantService:
    return assistant_service


@router.get("/conversations", response_model=schemas.ConversationListOut)
def list_conversations(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Conversations for the sidebar, most recently updated first."""
    summaries = conversation_service.list_conversations(db, user.id)
    return schemas.ConversationListOut(
        conversations=[
            schemas.ConversationOut(
                id=s.id, title=s.title, last_message=s.last_message, time=s.time
            )
            for s in summaries
        ]
    )


@router.get("/conversations/{conversation_id}/messages", response_model=schemas.MessageListOut)
def list_messages(
    conversation_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Transcript oldest first. Unknown ids return an empty list, not 404."""
    messages = conversation_service.list_messages(db, user.id, conversation_id)
    return schemas.MessageListOut(
        messages=[schemas.MessageOut.model_validate(m) for m in messages]
    )


@router.post("", response_model=schemas.ChatTurnResponse)
@limiter.limit(settings.chat_rate_limit)
def post_turn(
    request: Request,
    payload: schemas.ChatTurnRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AssistantService = Depends(get_assistant_service),
):
    """
    Run one assistant turn.
    Omitting conversationId (or sending a stale one) starts a new conversation;
    the response says which conversation the reply landed in.
    """
    result = service.run_turn(db, user.id, payload.message, payload.conversation_id)
    return schemas.ChatTurnResponse(
        id=result.message.id,
        content=result.message.content,
        created_at=result.message.created_at,
        conversation_id=result.conversation_id,
    )


@router.delete("/conversations/{conversation_id}", response_model=schemas.ConversationDeletedOut)
def delete_conversation(
    conversation_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a conversation and all of its messages."""
    conversation_service.delete_conversation(db, user.id, conversation_id)
    return schemas.ConversationDeletedOut(
        message="Conversation deleted successfully",
        deleted_conversation_id=conversation_id,
    )
