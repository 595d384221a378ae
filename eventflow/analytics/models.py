from pydantic import BaseModel


class TrackEventRequest(BaseModel):
    event: str
    json_data: str = ""
