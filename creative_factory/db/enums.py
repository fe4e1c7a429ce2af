from enum import Enum


class JobStatusEnum(str, Enum):
    queued = "queued"
    running = "running"
    done = "done"
    failed = "failed"
    needs_manual_review = "needs_manual_review"


class ObjectiveEnum(str, Enum):
    lead = "lead"
    sale = "sale"
    booking = "booking"
    awareness = "awareness"


class ClaimDecisionEnum(str, Enum):
    rewritten = "rewritten"
    flagged = "flagged"


class CreativeAssetTypeEnum(str, Enum):
    video_9_16 = "video_9_16"
    video_1_1 = "video_1_1"
    video_16_9 = "video_16_9"
    thumbnail = "thumbnail"
    srt = "srt"
    copy_pack = "copy_pack"


class ApprovalStatusEnum(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class RiskLevelEnum(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ActorTypeEnum(str, Enum):
    user = "user"
    agent = "agent"


VIDEO_ASSET_TYPE_BY_RATIO = {
    "9:16": CreativeAssetTypeEnum.video_9_16,
    "1:1": CreativeAssetTypeEnum.video_1_1,
    "16:9": CreativeAssetTypeEnum.video_16_9,
}
RATIO_BY_VIDEO_ASSET_TYPE = {asset_type: ratio for ratio, asset_type in VIDEO_ASSET_TYPE_BY_RATIO.items()}
