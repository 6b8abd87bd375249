import uuid

from fastapi import FastAPI, Form, HTTPException

app = FastAPI(title="Mock Telephony Provider", version="1.0.0")

# Numbers with this suffix are treated as unreachable so failure paths can be exercised locally
UNREACHABLE_SUFFIX = "0000"


@app.get("/health")
def health(): return {"status": "ok"}


@app.post("/v1/Accounts/{account_sid}/Calls/connect")
def connect_call(
    account_sid: str,
    From: str = Form(...),
    To: str = Form(...),
    CallerId: str = Form(...),
    StatusCallback: str = Form(None),
):
    if To.endswith(UNREACHABLE_SUFFIX):
        raise HTTPException(status_code=400, detail="destination unreachable")
    return {
        "Call": {
            "Sid": uuid.uuid4().hex,
            "AccountSid": account_sid,
            "From": From,
            "To": To,
            "PhoneNumberSid": CallerId,
            "Status": "in-progress",
            "StatusCallback": StatusCallback,
        }
    }
