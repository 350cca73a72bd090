"""
Social Footprint Analyzer — off-chain presence heuristics for a token symbol.

Every capability (microblog account, recent posts, repository, website, group
chat, sentiment) is an ordered list of providers tried through first_success.
Each step is best-effort: a failing step leaves its fields at their defaults
and the red-flag rules run on whatever was found.
"""
import asyncio
import re
from datetime import datetime, timezone
import httpx
from shared.config import settings
from shared.price_feed import search_coin_id
from shared.utils.fallback import first_success, first_success_over
from agents.scanner.config import (
    PROVIDER_TIMEOUT_SECONDS,
    NEW_ACCOUNT_DAYS,
    LOW_FOLLOWERS,
    LARGE_ACCOUNT_FOLLOWERS,
    MIN_COMMITS,
    NEW_DOMAIN_DAYS,
    SMALL_COMMUNITY_MEMBERS,
    MIN_RECENT_POSTS,
    MIN_PRESENCE_SIGNALS,
    SENTIMENT_POSITIVE,
    SENTIMENT_NEGATIVE,
)
from agents.scanner.models.schemas import SocialAnalysis
import structlog

logger = structlog.get_logger()

BROWSER_HEADERS = {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"}

HYPE_KEYWORDS = (
    "moon", "lambo", "diamond hands", "ape", "fomo", "pump", "rocket",
    "millionaire", "easy money", "get rich", "guaranteed", "insider", "whale alert",
)
SUBSTANCE_KEYWORDS = (
    "development", "roadmap", "partnership", "audit", "whitepaper", "utility", "use case", "team",
)

_NITTER_USERNAME = re.compile(r'class="username"[^>]*>@?([A-Za-z0-9_]{1,15})<')
_NITTER_FOLLOWERS = re.compile(r'Followers</span>\s*<span class="profile-stat-num">([\d,\.]+[KMB]?)</span>', re.I)
_NITTER_JOINED = re.compile(r'profile-joindate"><span title="[^"]*?(\d{1,2} \w{3} \d{4})"')
_NITTER_TWEET = re.compile(r'class="tweet-content[^"]*"[^>]*>(.*?)</div>', re.S)
_TAGS = re.compile(r"<[^>]+>")
_TG_MEMBERS = re.compile(r'tgme_page_extra">\s*([\d][\d\s,]*)\s+(?:members|subscribers)', re.I)
_LINK_LAST_PAGE = re.compile(r'[?&]page=(\d+)>;\s*rel="last"')


def parse_count(text: str) -> int:
    """'12.5K' -> 12500, '1,234' -> 1234."""
    match = re.search(r"(\d+(?:[.,]\d+)*)\s*([kmb]?)", text or "", re.I)
    if not match:
        return 0
    digits, suffix = match.group(1), match.group(2).lower()
    if suffix:
        number = float(digits.replace(",", ""))
        return int(number * {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}[suffix])
    return int(re.sub(r"[.,]", "", digits))


def _last_page(resp: httpx.Response) -> int:
    """Item count of a per_page=1 GitHub listing, read from its Link header."""
    match = _LINK_LAST_PAGE.search(resp.headers.get("link", ""))
    if match:
        return int(match.group(1))
    return len(resp.json() or [])


def keyword_counts(posts: list[str]) -> tuple[int, int]:
    """(hype, substance) keyword occurrences across posts."""
    hype = substance = 0
    for post in posts:
        text = post.lower()
        hype += sum(1 for k in HYPE_KEYWORDS if k in text)
        substance += sum(1 for k in SUBSTANCE_KEYWORDS if k in text)
    return hype, substance


def sentiment_label(scores: list[float | None]) -> str:
    valid = [s for s in scores if s is not None]
    if not valid:
        return "neutral"
    average = sum(valid) / len(valid)
    if average > SENTIMENT_POSITIVE:
        return "positive"
    if average < SENTIMENT_NEGATIVE:
        return "negative"
    return "neutral"


def identify_red_flags(found: dict, now: datetime | None = None) -> list[str]:
    """Red-flag rules over the collected social fields."""
    now = now or datetime.now(timezone.utc)
    flags = []

    if found.get("twitter_handle"):
        created = found.get("twitter_created")
        if created is not None and (now - created).days < NEW_ACCOUNT_DAYS:
            flags.append("new_twitter_account")
        followers = found.get("twitter_followers", 0)
        if followers < LOW_FOLLOWERS:
            flags.append("low_twitter_followers")
        if not found.get("twitter_verified") and followers > LARGE_ACCOUNT_FOLLOWERS:
            flags.append("unverified_large_account")
    else:
        flags.append("no_twitter_presence")

    if not found.get("github_repo"):
        flags.append("no_github_repository")
    elif found.get("github_commits", 0) < MIN_COMMITS:
        flags.append("minimal_development_activity")

    if not found.get("website_domain"):
        flags.append("no_official_website")
    elif found.get("domain_age_days") is not None and found["domain_age_days"] < NEW_DOMAIN_DAYS:
        flags.append("very_new_domain")

    if found.get("telegram_members", 0) < SMALL_COMMUNITY_MEMBERS:
        flags.append("small_community")

    presence = [found.get(k) for k in ("twitter_handle", "github_repo", "website_domain", "telegram_group")]
    if sum(1 for p in presence if p) < MIN_PRESENCE_SIGNALS:
        flags.append("minimal_social_presence")
    return flags


class SocialFootprintAnalyzer:
    """Collects a token's social footprint. Provider lists are injectable."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        account_providers: list | None = None,
        post_providers: list | None = None,
        repo_providers: list | None = None,
        website_providers: list | None = None,
        group_providers: list | None = None,
        sentiment_sources: list | None = None,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.timeout = timeout
        self.account_providers = account_providers if account_providers is not None else self._default_account_providers()
        self.post_providers = post_providers if post_providers is not None else self._default_post_providers()
        self.repo_providers = repo_providers if repo_providers is not None else [self.github_repository]
        self.website_providers = website_providers if website_providers is not None else [self.probe_domain]
        self.group_providers = group_providers if group_providers is not None else [self.telegram_preview]
        self.sentiment_sources = sentiment_sources if sentiment_sources is not None else [
            self.reddit_sentiment, self.coingecko_sentiment,
        ]

    def _default_account_providers(self) -> list:
        providers = [self.nitter_account]
        if settings.TWITTER_BEARER_TOKEN:
            providers.insert(0, self.twitter_api_account)
        return providers

    def _default_post_providers(self) -> list:
        providers = [self.nitter_posts]
        if settings.TWITTER_BEARER_TOKEN:
            providers.insert(0, self.twitter_api_posts)
        return providers

    async def analyze(self, symbol: str | None, creator_address: str | None = None) -> SocialAnalysis:
        found: dict = {}
        sym = (symbol or "").strip()
        if sym.upper() == "UNKNOWN":
            sym = ""

        await asyncio.gather(
            self._step("microblog", self._account_step(sym, found)),
            self._step("repository", self._repo_step(sym, creator_address, found)),
            self._step("website", self._website_step(sym, found)),
            self._step("group_chat", self._group_step(sym, found)),
        )
        posts = found.pop("_posts", None)
        await self._step("sentiment", self._sentiment_step(sym, posts, found))

        flags = []
        if posts is not None:
            hype, substance = keyword_counts(posts)
            if hype > substance:
                flags.append("excessive_hype_tweets")
            if len(posts) < MIN_RECENT_POSTS:
                flags.append("minimal_twitter_activity")
        flags += identify_red_flags(found)

        analysis = SocialAnalysis(
            twitter_handle=found.get("twitter_handle"),
            twitter_created=found.get("twitter_created"),
            twitter_followers=found.get("twitter_followers", 0),
            twitter_verified=found.get("twitter_verified", False),
            telegram_group=found.get("telegram_group"),
            telegram_members=found.get("telegram_members", 0),
            github_repo=found.get("github_repo"),
            github_commits=found.get("github_commits", 0),
            github_contributors=found.get("github_contributors", 0),
            website_domain=found.get("website_domain"),
            domain_age_days=found.get("domain_age_days"),
            community_sentiment=found.get("community_sentiment", "neutral"),
            social_red_flags=flags,
        )
        logger.info("social_analyzed", symbol=sym or None, red_flags=len(flags), sentiment=analysis.community_sentiment)
        return analysis

    async def _step(self, name: str, coro):
        try:
            await coro
        except Exception as e:
            logger.warning("social_step_failed", step=name, error=str(e))

    # --- steps ---

    async def _account_step(self, sym: str, found: dict):
        if not sym:
            return
        queries = [f"${sym}", sym, f"{sym} token", f"{sym} crypto"]
        account = await first_success_over(self.account_providers, queries, timeout=self.timeout, label="microblog_account")
        if not account:
            return
        found.update(
            twitter_handle=account["handle"],
            twitter_followers=account.get("followers", 0),
            twitter_verified=account.get("verified", False),
            twitter_created=account.get("created"),
        )
        posts = await first_success(self.post_providers, account["handle"], timeout=self.timeout, label="recent_posts")
        found["_posts"] = posts if posts is not None else []

    async def _repo_step(self, sym: str, creator_address: str | None, found: dict):
        queries = [sym, f"{sym}-token", f"{sym}-contract"] if sym else []
        if creator_address:
            queries.append(creator_address)
        if not queries:
            return
        repo = await first_success_over(self.repo_providers, queries, timeout=self.timeout, label="repository")
        if repo:
            found.update(
                github_repo=repo["url"],
                github_commits=repo.get("commits", 0),
                github_contributors=repo.get("contributors", 0),
            )

    async def _website_step(self, sym: str, found: dict):
        if not sym:
            return
        base = re.sub(r"[^a-z0-9-]", "", sym.lower())
        if not base:
            return
        domains = [f"{base}.com", f"{base}.io", f"{base}.org", f"{base}token.com", f"{base}coin.com"]
        domain = await first_success_over(self.website_providers, domains, timeout=self.timeout, label="website")
        if domain:
            found["website_domain"] = domain
            found["domain_age_days"] = await first_success([self.domain_age], domain, timeout=self.timeout, label="whois")

    async def _group_step(self, sym: str, found: dict):
        if not sym:
            return
        base = re.sub(r"[^a-z0-9_]", "", sym.lower())
        if not base:
            return
        handles = [base, f"{base}official", f"{base}token", f"{base}community"]
        group = await first_success_over(self.group_providers, handles, timeout=self.timeout, label="group_chat")
        if group:
            found["telegram_group"], found["telegram_members"] = group

    async def _sentiment_step(self, sym: str, posts: list[str] | None, found: dict):
        scores: list[float | None] = []
        if sym:
            for source in self.sentiment_sources:
                scores.append(await first_success([source], sym, timeout=self.timeout, label="sentiment"))
        if posts:
            hype, substance = keyword_counts(posts)
            if hype + substance:
                scores.append(substance / (hype + substance))
        found["community_sentiment"] = sentiment_label(scores)

    # --- microblog providers ---

    def _twitter_headers(self) -> dict:
        return {"Authorization": f"Bearer {settings.TWITTER_BEARER_TOKEN}"}

    async def twitter_api_account(self, query: str) -> dict | None:
        resp = await self.client.get(
            f"{settings.TWITTER_API_URL}/tweets/search/recent",
            headers=self._twitter_headers(),
            params={
                "query": query,
                "expansions": "author_id",
                "user.fields": "created_at,verified,public_metrics",
            },
        )
        resp.raise_for_status()
        users = (resp.json().get("includes") or {}).get("users") or []
        if not users:
            return None
        user = users[0]
        created = user.get("created_at")
        return {
            "handle": user["username"],
            "followers": (user.get("public_metrics") or {}).get("followers_count", 0),
            "verified": bool(user.get("verified", False)),
            "created": datetime.fromisoformat(created.replace("Z", "+00:00")) if created else None,
        }

    async def twitter_api_posts(self, handle: str) -> list[str] | None:
        resp = await self.client.get(
            f"{settings.TWITTER_API_URL}/tweets/search/recent",
            headers=self._twitter_headers(),
            params={"query": f"from:{handle}", "max_results": 10},
        )
        resp.raise_for_status()
        return [t.get("text", "") for t in resp.json().get("data") or []]

    async def nitter_account(self, query: str) -> dict | None:
        resp = await self.client.get(
            f"{settings.NITTER_URL}/search", params={"q": query}, headers=BROWSER_HEADERS,
        )
        resp.raise_for_status()
        match = _NITTER_USERNAME.search(resp.text)
        if not match:
            return None
        handle = match.group(1)

        profile = await self.client.get(f"{settings.NITTER_URL}/{handle}", headers=BROWSER_HEADERS)
        profile.raise_for_status()
        followers = _NITTER_FOLLOWERS.search(profile.text)
        joined = _NITTER_JOINED.search(profile.text)
        created = None
        if joined:
            created = datetime.strptime(joined.group(1), "%d %b %Y").replace(tzinfo=timezone.utc)
        return {
            "handle": handle,
            "followers": parse_count(followers.group(1)) if followers else 0,
            "verified": "verified-icon" in profile.text or "icon-ok" in profile.text,
            "created": created,
        }

    async def nitter_posts(self, handle: str) -> list[str] | None:
        resp = await self.client.get(f"{settings.NITTER_URL}/{handle}", headers=BROWSER_HEADERS)
        resp.raise_for_status()
        return [_TAGS.sub("", m).strip() for m in _NITTER_TWEET.findall(resp.text)][:10]

    # --- repository / website / group providers ---

    def _github_headers(self) -> dict:
        headers = {"Accept": "application/vnd.github+json"}
        if settings.GITHUB_TOKEN:
            headers["Authorization"] = f"Bearer {settings.GITHUB_TOKEN}"
        return headers

    async def github_repository(self, query: str) -> dict | None:
        headers = self._github_headers()
        resp = await self.client.get(
            f"{settings.GITHUB_API_URL}/search/repositories",
            params={"q": query, "sort": "updated", "order": "desc", "per_page": 1},
            headers=headers,
        )
        resp.raise_for_status()
        items = resp.json().get("items") or []
        if not items:
            return None
        repo = items[0]

        commits = await self.client.get(f"{repo['url']}/commits", params={"per_page": 1}, headers=headers)
        contributors = await self.client.get(
            f"{repo['url']}/contributors", params={"per_page": 1, "anon": "true"}, headers=headers,
        )
        return {
            "url": repo["html_url"],
            "commits": _last_page(commits) if commits.status_code == 200 else 0,
            "contributors": _last_page(contributors) if contributors.status_code == 200 else 0,
        }

    async def probe_domain(self, domain: str) -> str | None:
        try:
            resp = await self.client.head(f"https://{domain}", follow_redirects=True)
        except httpx.HTTPError:
            return None
        return domain if resp.status_code == 200 else None

    async def domain_age(self, domain: str) -> int | None:
        resp = await self.client.get(settings.WHOIS_API_URL, params={"q": domain})
        resp.raise_for_status()
        data = resp.json()
        created = data.get("created_date") or data.get("created")
        if not created:
            return None
        if isinstance(created, (int, float)):
            created_at = datetime.fromtimestamp(created, tz=timezone.utc)
        else:
            created_at = datetime.fromisoformat(str(created).replace("Z", "+00:00"))
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=timezone.utc)
        return max((datetime.now(timezone.utc) - created_at).days, 0)

    async def telegram_preview(self, handle: str) -> tuple[str, int] | None:
        resp = await self.client.get(f"{settings.TELEGRAM_PREVIEW_URL}/{handle}", headers=BROWSER_HEADERS)
        resp.raise_for_status()
        match = _TG_MEMBERS.search(resp.text)
        if not match:
            return None
        return handle, parse_count(match.group(1).replace(" ", ""))

    # --- sentiment sources (0..1, None when there is no signal) ---

    async def reddit_sentiment(self, sym: str) -> float | None:
        resp = await self.client.get(
            settings.REDDIT_SEARCH_URL,
            params={"q": sym, "sort": "relevance", "t": "week"},
            headers={"User-Agent": "token-threat-scanner/1.0"},
        )
        resp.raise_for_status()
        positive = negative = 0
        for post in ((resp.json().get("data") or {}).get("children") or [])[:10]:
            title = (post.get("data", {}).get("title") or "").lower()
            score = post.get("data", {}).get("score", 0)
            if score > 10 and any(w in title for w in ("bullish", "good", "pump")):
                positive += 1
            elif score < -5 or any(w in title for w in ("scam", "rug", "dump")):
                negative += 1
        if positive + negative == 0:
            return None
        return positive / (positive + negative)

    async def coingecko_sentiment(self, sym: str) -> float | None:
        coin_id = await search_coin_id(self.client, sym)
        if not coin_id:
            return None
        resp = await self.client.get(
            f"{settings.COINGECKO_API_URL}/coins/{coin_id}",
            params={"localization": "false", "tickers": "false", "market_data": "false"},
        )
        resp.raise_for_status()
        up = resp.json().get("sentiment_votes_up_percentage")
        return float(up) / 100 if up is not None else None
