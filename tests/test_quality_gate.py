import copy

from creative_factory.schemas.blueprint import Blueprint
from creative_factory.schemas.copy_pack import CopyPack
from creative_factory.services.quality_gate import evaluate_blueprint, evaluate_copy, run_quality_gate, score_issues
from fakes import CLEAN_BLUEPRINT, CLEAN_COPY


def _blueprint(aspect_ratio: str = "9:16", **overrides) -> Blueprint:
    payload = copy.deepcopy(CLEAN_BLUEPRINT)
    payload.update(overrides)
    payload["aspect_ratio"] = aspect_ratio
    return Blueprint.model_validate(payload)


def _codes(issues) -> list[str]:
    return [issue.code for issue in issues]


def test_clean_blueprints_and_copy_score_full_marks():
    report = run_quality_gate(
        CopyPack.model_validate(CLEAN_COPY),
        [_blueprint(ratio) for ratio in ("9:16", "1:1", "16:9")],
    )

    assert report.issues == []
    assert report.score == 100
    assert report.passed is True


def test_undeclared_safe_zone_is_critical():
    scenes = copy.deepcopy(CLEAN_BLUEPRINT["scenes"])
    del scenes[0]["text_overlay"]["safe_zone"]

    issues = evaluate_blueprint(_blueprint(scenes=scenes))

    assert _codes(issues) == ["SAFE_ZONE_UNDECLARED"]
    assert issues[0].severity == "critical"
    assert issues[0].affected_format == "9:16"
    assert score_issues(issues).passed is False


def test_safe_zone_violation_and_long_text():
    scenes = copy.deepcopy(CLEAN_BLUEPRINT["scenes"])
    scenes[1]["text_overlay"]["safe_zone"] = False
    scenes[1]["text_overlay"]["text"] = "x" * 61

    issues = evaluate_blueprint(_blueprint("1:1", scenes=scenes))

    assert _codes(issues) == ["SAFE_ZONE_VIOLATION", "TEXT_TOO_LONG"]
    report = score_issues(issues)
    assert report.score == 75
    assert report.passed is False


def test_missing_cta_timing_is_critical():
    issues = evaluate_blueprint(_blueprint(cta_placement={"position": "bottom_center"}))

    assert _codes(issues) == ["CTA_MISSING"]
    assert score_issues(issues).critical_issues[0].code == "CTA_MISSING"


def test_duration_and_subtitle_warnings():
    issues = evaluate_blueprint(_blueprint("16:9", duration_seconds=90, subtitles=[]))

    assert _codes(issues) == ["INVALID_DURATION", "NO_SUBTITLES"]
    report = score_issues(issues)
    assert report.score == 90
    assert report.passed is True


def test_low_subtitle_coverage_is_informational():
    issues = evaluate_blueprint(_blueprint(subtitles=[{"start": 0, "end": 3, "text": "Bonjour"}]))

    assert _codes(issues) == ["LOW_SUBTITLE_COVERAGE"]
    assert issues[0].severity == "info"


def test_scene_gaps_only_checked_for_vertical_format():
    scenes = copy.deepcopy(CLEAN_BLUEPRINT["scenes"])
    scenes[1]["start_time"] = 6

    assert _codes(evaluate_blueprint(_blueprint("9:16", scenes=scenes))) == ["SCENE_GAP"]
    assert evaluate_blueprint(_blueprint("16:9", scenes=scenes)) == []


def test_copy_checks_hook_length_and_cta_verbs():
    pack = CopyPack.model_validate(
        {
            **CLEAN_COPY,
            "hooks": [
                "Une phrase beaucoup trop longue pour arrêter le défilement de qui que ce soit",
                *CLEAN_COPY["hooks"][1:],
            ],
            "ctas": ["Maintenant", *CLEAN_COPY["ctas"][1:]],
        }
    )

    issues = evaluate_copy(pack)

    assert _codes(issues) == ["HOOK_TOO_LONG", "WEAK_CTA"]


def test_score_threshold_fails_without_critical_issues():
    scenes = copy.deepcopy(CLEAN_BLUEPRINT["scenes"])
    for scene in scenes:
        scene["text_overlay"]["text"] = "y" * 80

    report = run_quality_gate(CopyPack.model_validate(CLEAN_COPY), [_blueprint(scenes=scenes)])

    assert report.critical_issues == []
    assert report.score == 70
    assert report.passed is True

    report = run_quality_gate(
        CopyPack.model_validate(CLEAN_COPY),
        [_blueprint(scenes=scenes), _blueprint("1:1", scenes=scenes)],
    )
    assert report.critical_issues == []
    assert report.score == 40
    assert report.passed is False
