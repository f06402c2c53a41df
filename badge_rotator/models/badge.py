from pydantic import BaseModel, ConfigDict


class BadgeDocument(BaseModel):
    """Source page as fetched; discarded once the fragment is extracted."""

    url: str
    html: str


class BadgeFragment(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: str
    html: str  # outer HTML of the matched anchor, post-processed


class RenderedPage(BaseModel):
    html: str
    local_path: str
    key: str
    public_url: str


class RenderedImage(BaseModel):
    source_url: str  # where the render service hosts the image
    local_path: str
    archive_key: str
    size: int
