"""Article, topic, bookmark and reading history API routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from config import settings

from ..schemas import AskRequest
from ..services import article_service, llm_service
from ..services.api_helpers import api_success, current_user, get_store, parse_json_body, require_user
from ..utils.validation import parse_paging

bp = Blueprint("articles", __name__)


@bp.route("/api/articles", methods=["GET"])
def list_articles():
    """List articles, newest first
    ---
    tags:
      - Articles
    parameters:
      - in: query
        name: topic
        type: string
        description: Exact topic key filter
      - in: query
        name: limit
        type: integer
        default: 20
      - in: query
        name: offset
        type: integer
        default: 0
    responses:
      200:
        description: Article summaries
      400:
        description: Invalid paging parameters
    """
    limit, offset = parse_paging(
        request.args.get("limit"),
        request.args.get("offset"),
        default_limit=settings.content.list_limit,
        max_limit=settings.content.max_list_limit,
    )
    topic = (request.args.get("topic") or "").strip() or None
    articles = article_service.list_articles(get_store(), current_user(), topic=topic, limit=limit, offset=offset)
    return jsonify({"articles": articles})


@bp.route("/api/articles/<slug>", methods=["GET"])
def get_article(slug: str):
    """Get one article by slug
    ---
    tags:
      - Articles
    parameters:
      - in: path
        name: slug
        type: string
        required: true
    responses:
      200:
        description: Full article
      403:
        description: Pro article; body carries a preview
      404:
        description: Article not found
    """
    article = article_service.get_article(get_store(), slug, current_user())
    return jsonify({"article": article})


@bp.route("/api/articles/<slug>/ask", methods=["POST"])
def ask_article(slug: str):
    """Ask the AI assistant about an article
    ---
    tags:
      - Articles
    parameters:
      - in: path
        name: slug
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - question
          properties:
            question:
              type: string
    responses:
      200:
        description: Answer text
      400:
        description: Missing question
      403:
        description: Pro article
      404:
        description: Article not found
      503:
        description: Assistant not configured
    """
    req = parse_json_body(AskRequest)
    article = article_service.get_article(get_store(), slug, current_user())
    answer = llm_service.answer_question(article, req.question)
    return jsonify({"answer": answer})


@bp.route("/api/topics", methods=["GET"])
def list_topics():
    """List topics
    ---
    tags:
      - Articles
    responses:
      200:
        description: Topic keys and labels
    """
    return jsonify({"topics": article_service.list_topics(get_store())})


@bp.route("/api/bookmarks", methods=["GET"])
def list_bookmarks():
    """List the current user's bookmarks
    ---
    tags:
      - Bookmarks
    responses:
      200:
        description: Bookmarked article summaries
      401:
        description: Not logged in
    """
    user = require_user()
    return jsonify({"bookmarks": article_service.list_bookmarks(get_store(), user)})


@bp.route("/api/bookmarks/<slug>", methods=["POST"])
def add_bookmark(slug: str):
    """Bookmark an article
    ---
    tags:
      - Bookmarks
    parameters:
      - in: path
        name: slug
        type: string
        required: true
    responses:
      200:
        description: Bookmarked (idempotent)
      401:
        description: Not logged in
      404:
        description: Article not found
    """
    user = require_user()
    created = article_service.add_bookmark(get_store(), user, slug)
    return api_success(created=created)


@bp.route("/api/bookmarks/<slug>", methods=["DELETE"])
def remove_bookmark(slug: str):
    """Remove a bookmark
    ---
    tags:
      - Bookmarks
    parameters:
      - in: path
        name: slug
        type: string
        required: true
    responses:
      200:
        description: Removed (idempotent)
      401:
        description: Not logged in
    """
    user = require_user()
    removed = article_service.remove_bookmark(get_store(), user, slug)
    return api_success(removed=removed)


@bp.route("/api/history", methods=["GET"])
def list_history():
    """Reading history of the current user
    ---
    tags:
      - Bookmarks
    responses:
      200:
        description: Recently read article summaries
      401:
        description: Not logged in
    """
    user = require_user()
    return jsonify({"history": article_service.list_history(get_store(), user)})
