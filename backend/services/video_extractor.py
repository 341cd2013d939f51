"""
Video extraction for Twitter/X posts.
Resolves a post URL to a direct mp4 URL, via RapidAPI downloaders when a
RapidAPI key is configured and yt-dlp otherwise.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlparse

import httpx
import yt_dlp

from config import settings
from utils.exceptions import (
    AppError,
    InvalidUrlError,
    PrivateVideoError,
    RateLimitError,
    VideoNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VideoInfo:
    """Direct media location plus whatever metadata the source returned."""
    video_url: str
    title: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = None


VALID_HOSTS = {"twitter.com", "x.com", "www.twitter.com", "www.x.com"}
TWEET_ID_REGEX = re.compile(r'(?:twitter\.com|x\.com)/.*/status/(\d+)')


def parse_tweet_id(url: str) -> str:
    """Extract the numeric post id from a twitter.com or x.com status URL."""
    clean_url = (url or "").split('?')[0]
    match = TWEET_ID_REGEX.search(clean_url)
    if not match:
        raise InvalidUrlError("Could not parse tweet ID from URL")
    return match.group(1)


def is_valid_post_url(url: str) -> bool:
    """True for http(s) twitter.com / x.com URLs that point at a status."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    return (parsed.hostname or "").lower() in VALID_HOSTS and "/status/" in url


# ── RapidAPI downloaders ──────────────────────────────────────────────

def _parse_variants_response(data: dict) -> VideoInfo:
    """Shared parser for the two 'twitter downloader' APIs (videoVariants lists)."""
    if not data or not data.get("media"):
        raise VideoNotFoundError("No video found")
    video = data["media"].get("video") or {}
    variants = video.get("videoVariants") or []
    if not variants:
        raise VideoNotFoundError("No video found")

    mp4_variants = sorted(
        (v for v in variants if v.get("content_type") == "video/mp4"),
        key=lambda v: v.get("bitrate") or 0,
        reverse=True,
    )
    if not mp4_variants:
        raise VideoNotFoundError("No MP4 video format")

    duration_ms = video.get("durationMillis")
    return VideoInfo(
        video_url=mp4_variants[0]["url"],
        title=data.get("text"),
        thumbnail_url=video.get("thumbnailUrl"),
        duration=duration_ms // 1000 if duration_ms else None,
    )


def _parse_links_response(data: dict) -> VideoInfo:
    """Parser for the social-media downloader API (quality-tagged links)."""
    links = (data or {}).get("links") or []
    link = next((l for l in links if l.get("quality") in ("hd", "sd")), None)
    if not link:
        raise VideoNotFoundError("No video found")
    return VideoInfo(video_url=link["link"], title=data.get("title"))


@dataclass(frozen=True)
class RapidApiEndpoint:
    url: str
    host: str
    parse: Callable[[dict], VideoInfo]


RAPIDAPI_ENDPOINTS = [
    RapidApiEndpoint(
        url="https://twitter-video-downloader-download-twitter-videos-gifs-and-images.p.rapidapi.com/status",
        host="twitter-video-downloader-download-twitter-videos-gifs-and-images.p.rapidapi.com",
        parse=_parse_variants_response,
    ),
    RapidApiEndpoint(
        url="https://twitter-downloader-download-twitter-videos-gifs-and-images.p.rapidapi.com/status",
        host="twitter-downloader-download-twitter-videos-gifs-and-images.p.rapidapi.com",
        parse=_parse_variants_response,
    ),
    RapidApiEndpoint(
        url="https://social-media-video-downloader.p.rapidapi.com/smvd/get/twitter",
        host="social-media-video-downloader.p.rapidapi.com",
        parse=_parse_links_response,
    ),
]


class VideoExtractor:
    """Finds the downloadable video behind a Twitter/X post."""

    def __init__(
        self,
        rapidapi_key: Optional[str] = None,
        timeout: Optional[float] = None,
        endpoints: Optional[list[RapidApiEndpoint]] = None,
    ):
        self.rapidapi_key = settings.rapidapi_key if rapidapi_key is None else rapidapi_key
        self.timeout = timeout or settings.extractor_timeout_seconds
        self.endpoints = endpoints if endpoints is not None else RAPIDAPI_ENDPOINTS

    async def extract(self, post_url: str) -> VideoInfo:
        """
        Resolve a post URL to its video.

        Raises:
            InvalidUrlError: not a twitter.com / x.com status URL
            RateLimitError: a downloader API rejected us for rate limiting
            PrivateVideoError: the post is private or protected
            VideoNotFoundError: no method produced a video
        """
        if not is_valid_post_url(post_url):
            raise InvalidUrlError("Invalid Twitter/X URL. Please provide a valid tweet URL with a video.")

        primary_error: Optional[AppError] = None
        if self.rapidapi_key:
            try:
                return await self._extract_rapidapi(post_url)
            except RateLimitError:
                raise
            except AppError as e:
                logger.warning(f"RapidAPI extraction failed: {e.message}")
                primary_error = e

        try:
            return await self._extract_ytdlp(post_url)
        except PrivateVideoError:
            raise
        except AppError as e:
            if primary_error is None:
                raise
            raise VideoNotFoundError(f"Failed to extract video: {primary_error.message}. {e.message}")

    async def _extract_rapidapi(self, post_url: str) -> VideoInfo:
        """Try each RapidAPI downloader in order until one yields a video."""
        last_status: Optional[int] = None
        last_message = "Failed to extract video from Twitter"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for endpoint in self.endpoints:
                logger.info(f"Trying video API: {endpoint.host}")
                try:
                    response = await client.get(
                        endpoint.url,
                        params={"url": post_url},
                        headers={
                            "X-RapidAPI-Key": self.rapidapi_key,
                            "X-RapidAPI-Host": endpoint.host,
                        },
                    )
                    response.raise_for_status()
                    info = endpoint.parse(response.json())
                    logger.info(f"Video found via {endpoint.host}")
                    return info
                except httpx.HTTPStatusError as e:
                    last_status = e.response.status_code
                    last_message = f"{endpoint.host} returned HTTP {last_status}"
                    logger.warning(f"Video API failed: {last_message}")
                    # Key-level problems are the same for every endpoint
                    if last_status == 401:
                        raise VideoNotFoundError("Invalid RapidAPI key")
                    if last_status == 429:
                        raise RateLimitError("Rate limit exceeded. Please try again later")
                except (httpx.HTTPError, ValueError) as e:
                    last_message = str(e) or type(e).__name__
                    logger.warning(f"Video API failed: {endpoint.host}: {last_message}")
                except AppError as e:
                    last_message = e.message
                    logger.warning(f"Video API returned no video: {endpoint.host}: {last_message}")

        if last_status == 403:
            raise VideoNotFoundError(
                "RapidAPI key not authorized. Please subscribe to a Twitter Video Downloader API at rapidapi.com/hub"
            )
        raise VideoNotFoundError(last_message)

    async def _extract_ytdlp(self, post_url: str) -> VideoInfo:
        """Fallback: let yt-dlp read the post metadata (no download)."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: self._ytdlp_info(post_url))

    def _ytdlp_info(self, post_url: str) -> VideoInfo:
        ydl_opts = {
            'quiet': True,
            'no_warnings': True,
            'noplaylist': True,
            'socket_timeout': self.timeout,
        }
        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                info = ydl.extract_info(post_url, download=False)
        except yt_dlp.DownloadError as e:
            message = str(e)
            logger.error(f"yt-dlp extraction failed: {message}")
            lowered = message.lower()
            if "private" in lowered or "protected" in lowered:
                raise PrivateVideoError("This post is private or protected")
            raise VideoNotFoundError("No video found in this post")

        if info and info.get("entries"):
            info = next((entry for entry in info["entries"] if entry), None)
        if not info:
            raise VideoNotFoundError("No video found in this post")

        video_url = _best_mp4_url(info)
        if not video_url:
            raise VideoNotFoundError("No MP4 video format")

        duration = info.get("duration")
        return VideoInfo(
            video_url=video_url,
            title=info.get("title") or info.get("description"),
            thumbnail_url=info.get("thumbnail"),
            duration=int(duration) if duration else None,
        )


def _best_mp4_url(info: dict) -> Optional[str]:
    """Highest-bitrate progressive mp4 from yt-dlp metadata."""
    candidates = [
        f for f in info.get("formats") or []
        if f.get("ext") == "mp4"
        and f.get("protocol") in ("http", "https")
        and f.get("vcodec") != "none"
        and f.get("url")
    ]
    if candidates:
        best = max(candidates, key=lambda f: f.get("tbr") or 0)
        return best["url"]
    if info.get("ext") == "mp4" and info.get("url"):
        return info["url"]
    return None
