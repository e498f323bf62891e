"""Comment URL risk factor.

Every URL in the link, body and title is normalized and checked for recent
exact duplicates (same author and other authors), suspicious shapes, and
prefix similarity to links posted by other authors. Prefix similarity catches
referral-link rotation; the spread of the matching posts' timestamps decides
whether it looks like a coordinated burst or organic sharing.
"""

from __future__ import annotations

from spam_blocker.risk_score.types import (
    FACTOR_COMMENT_URL_RISK,
    NEUTRAL_SCORE,
    RiskContext,
    RiskFactor,
)
from spam_blocker.risk_score.utils import SECONDS_PER_DAY, clamp
from spam_blocker.schemas.publication import CommentPublication
from spam_blocker.utils.urls import (
    calculate_timestamp_stddev,
    collect_all_urls,
    collect_url_prefixes_for_similarity,
    count_query_params,
    extract_domain,
    get_time_clustering_risk,
    is_ip_address_url,
    is_url_shortener,
)

NO_URL_SCORE = 0.1
BASELINE_SCORE = 0.2
LINK_WINDOW_SECONDS = SECONDS_PER_DAY

MAX_QUERY_PARAMS = 5
MAX_URL_LENGTH = 500
# Links to one domain from the author within the window: (minimum count, risk).
DOMAIN_REPEAT_LADDER = ((10, 0.25), (5, 0.15))


def _exact_duplicate_risk(ctx: RiskContext, url: str, since: int) -> tuple[float, list[str]]:
    author = ctx.author_public_key
    risk = 0.0
    issues: list[str] = []

    own = ctx.data.find_links_by_author(author, url, since)
    if own >= 5:
        risk += 0.4
        issues.append(f"{own} posts with same link from author in 24h")
    elif own >= 3:
        risk += 0.25
        issues.append(f"{own} posts with same link from author in 24h")
    elif own >= 1:
        risk += 0.15
        issues.append(f"{own} post(s) with same link from author in 24h")

    others = ctx.data.find_links_by_others(author, url, since)
    if others.count >= 10:
        risk += 0.5
        issues.append(
            f"{others.count} posts with same link from {others.unique_authors} other authors "
            "(likely coordinated spam)"
        )
    elif others.count >= 5:
        risk += 0.35
        issues.append(
            f"{others.count} posts with same link from {others.unique_authors} other authors "
            "(possible coordinated spam)"
        )
    elif others.count >= 2:
        risk += 0.2
        issues.append(f"{others.count} posts with same link from other authors")
    elif others.count >= 1:
        risk += 0.1
        issues.append("link seen from another author")

    return risk, issues


def _shape_risk(url: str) -> tuple[float, list[str]]:
    risk = 0.0
    issues: list[str] = []

    if is_ip_address_url(url):
        risk += 0.2
        issues.append("uses IP address instead of domain")
    if is_url_shortener(url):
        risk += 0.15
        issues.append("uses URL shortener")
    param_count = count_query_params(url)
    if param_count > MAX_QUERY_PARAMS:
        risk += 0.05
        issues.append(f"{param_count} query parameters")
    if len(url) > MAX_URL_LENGTH:
        risk += 0.1
        issues.append("unusually long URL")

    return risk, issues


def _domain_repeat_risk(ctx: RiskContext, domain: str, since: int) -> tuple[float, list[str]]:
    count = ctx.data.count_link_domain_by_author(ctx.author_public_key, domain, since)
    for minimum, risk in DOMAIN_REPEAT_LADDER:
        if count >= minimum:
            return risk, [f"{count} links to {domain} from author in 24h"]
    return 0.0, []


def _prefix_similarity_risk(ctx: RiskContext, prefix: str, since: int) -> tuple[float, list[str]]:
    matches = ctx.data.find_url_prefix_matches(
        prefix, since, exclude_author_public_key=ctx.author_public_key
    )
    authors = {match.author_public_key for match in matches}
    if len(authors) < 2:
        return 0.0, []

    risk = 0.15 if len(authors) >= 5 else 0.1
    stddev = calculate_timestamp_stddev(match.timestamp for match in matches)
    bonus, description = get_time_clustering_risk(stddev, len(matches))
    risk += bonus

    issue = f"{len(matches)} similar links ({prefix}) from {len(authors)} other authors"
    if description:
        issue += f", {description}"
    return risk, [issue]


def calculate_comment_url_risk(ctx: RiskContext, weight: float) -> RiskFactor:
    comment = ctx.request.comment
    if not isinstance(comment, CommentPublication):
        return RiskFactor(
            name=FACTOR_COMMENT_URL_RISK,
            score=NEUTRAL_SCORE,
            weight=0.0,
            explanation="Link analysis: not applicable (non-comment publication)",
        )

    urls = collect_all_urls(link=comment.link, content=comment.content, title=comment.title)
    if not urls:
        return RiskFactor(
            name=FACTOR_COMMENT_URL_RISK,
            score=NO_URL_SCORE,
            weight=weight,
            explanation="Link analysis: no URLs",
        )

    since = ctx.now - LINK_WINDOW_SECONDS
    domains = dict.fromkeys(domain for domain in map(extract_domain, urls) if domain)
    prefixes = collect_url_prefixes_for_similarity(
        link=comment.link, content=comment.content, title=comment.title
    )

    # Increments add up across URLs; each domain and prefix is scored once.
    checks = [
        *(_exact_duplicate_risk(ctx, url, since) for url in urls),
        *(_shape_risk(url) for url in urls),
        *(_domain_repeat_risk(ctx, domain, since) for domain in domains),
        *(_prefix_similarity_risk(ctx, prefix, since) for prefix in prefixes),
    ]
    score = BASELINE_SCORE
    issues: list[str] = []
    for risk, check_issues in checks:
        score += risk
        issues.extend(issue for issue in check_issues if issue not in issues)

    if issues:
        explanation = f"Link analysis: {', '.join(issues)}"
    else:
        explanation = f"Link analysis: {len(urls)} URL(s), no suspicious patterns detected"

    return RiskFactor(
        name=FACTOR_COMMENT_URL_RISK,
        score=clamp(score),
        weight=weight,
        explanation=explanation,
    )
