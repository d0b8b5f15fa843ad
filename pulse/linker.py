"""Link posts to the articles they share, by the msid in the post's link."""

from __future__ import annotations

import logging
import re
import sqlite3

from pulse.db import get_article_by_msid, get_unlinked_posts_with_links, update_post_article
from pulse.models import Post, extract_msid_from_url

logger = logging.getLogger(__name__)


class PostArticleLinker:
    """Attach posts to already-imported articles and count the outcomes."""

    def __init__(self, conn: sqlite3.Connection, article_domain: str = "taz.de"):
        self.conn = conn
        self._domain_re = re.compile(re.escape(article_domain), re.IGNORECASE)
        self.stats = {
            "linked": 0,
            "already_linked": 0,
            "not_article_link": 0,
            "no_msid": 0,
            "article_not_found": 0,
        }

    def is_article_link(self, post: Post) -> bool:
        return bool(post.external_url) and bool(self._domain_re.search(post.external_url))

    def link_post(self, post: Post) -> bool:
        """Link one post. Returns True when the post ends up linked."""
        if not post.external_url:
            return False

        if not self.is_article_link(post):
            self.stats["not_article_link"] += 1
            return False

        msid = extract_msid_from_url(post.external_url)
        if not msid:
            self.stats["no_msid"] += 1
            logger.warning("Could not extract msid from URL: %s", post.external_url)
            return False

        article = get_article_by_msid(self.conn, msid)
        if article is None:
            self.stats["article_not_found"] += 1
            logger.debug("No article with msid %s for post %s", msid, post.id)
            return False

        if post.article_id == article.id:
            self.stats["already_linked"] += 1
            return True

        update_post_article(self.conn, post.id, article.id)
        post.article_id = article.id
        self.stats["linked"] += 1
        logger.info("Linked post %s to article %s (%s)", post.id, article.id, article.truncated_title(50))
        return True

    def link_all_unlinked_posts(self) -> dict[str, int]:
        posts = get_unlinked_posts_with_links(self.conn)
        logger.info("Linking %d unlinked posts", len(posts))
        for post in posts:
            self.link_post(post)
        logger.info(
            "Post-article linking: %d linked, %d already linked, %d not article links, "
            "%d without msid, %d articles not found",
            self.stats["linked"], self.stats["already_linked"],
            self.stats["not_article_link"], self.stats["no_msid"],
            self.stats["article_not_found"],
        )
        return dict(self.stats)
