from fastapi import APIRouter, Request

router = APIRouter()


@router.get("")
def service_status(request: Request):
    state = request.app.state
    config = state.verification_config
    return {
        "service": state.app_name,
        "status": "ok",
        "delivery": state.code_sender.health(),
        "verification": {
            "gate_enabled": config.gate_enabled,
            "code_length": config.code_length,
            "code_expiry_minutes": config.code_expiry_minutes,
            "cooldown_minutes": config.cooldown_minutes,
            "max_attempts": config.max_attempts,
        },
    }
