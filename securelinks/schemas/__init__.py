from securelinks.schemas.links import (
    GenerateLinkRequest,
    BatchGenerateRequest,
    GeneratedLinkResponse,
    BatchGenerateResponse,
    LinkSummary,
    RevokeLinkRequest,
    ValidateTokenRequest,
    ValidationResponse,
    DenialResponse,
    SessionInfo,
    LinkExpiredResponse,
)
