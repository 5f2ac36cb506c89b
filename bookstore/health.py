from datetime import datetime, timezone

from flask import Blueprint, current_app

from .errors import envelope

bp = Blueprint("health", __name__)

ENDPOINTS = {
    "authentication": {
        "POST /api/auth/register": "Register a new user",
        "POST /api/auth/login": "Login user",
        "GET /api/auth/me": "Get current user (requires auth)",
        "PUT /api/auth/me": "Update own profile (requires auth)",
        "POST /api/auth/logout": "Logout user (requires auth)",
    },
    "users": {
        "GET /api/users": "List users (admin only)",
        "PUT /api/users/:id/role": "Change a user's role (admin only)",
    },
    "books": {
        "GET /api/books": "Get all books with pagination and filtering",
        "GET /api/books/:id": "Get a single book by ID",
        "POST /api/books": "Create a new book (admin only)",
        "PUT /api/books/:id": "Update a book (admin only)",
        "DELETE /api/books/:id": "Delete a book (admin only)",
        "POST /api/books/:id/reviews": "Review a book (requires auth)",
    },
    "categories": {
        "GET /api/categories": "Get all categories",
        "GET /api/categories/:id": "Get a single category by ID",
        "POST /api/categories": "Create a new category (admin only)",
        "PUT /api/categories/:id": "Update a category (admin only)",
        "DELETE /api/categories/:id": "Delete a category (admin only)",
    },
    "authors": {
        "GET /api/authors": "List authors",
        "GET /api/authors/:id": "Get an author",
        "POST /api/authors": "Create an author (admin only)",
    },
    "publishers": {
        "GET /api/publishers": "List publishers",
        "GET /api/publishers/:id": "Get a publisher",
        "POST /api/publishers": "Create a publisher (admin only)",
    },
    "orders": {
        "GET /api/orders": "Get orders (admin: all, customer: own)",
        "GET /api/orders/:id": "Get a single order",
        "POST /api/orders": "Create a new order",
        "PUT /api/orders/:id/status": "Update order status (admin only)",
        "DELETE /api/orders/:id": "Cancel an order",
    },
    "dashboard": {
        "GET /api/dashboard/stats": "Get dashboard statistics (admin only)",
        "GET /api/dashboard/sales-trends": "Get sales trends (admin only)",
        "GET /api/dashboard/customer-analytics": "Get customer analytics (admin only)",
    },
}


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            success:
              type: boolean
              example: true
            message:
              type: string
              example: Online Bookstore API is running!
    """
    return {
        "success": True,
        "message": "Online Bookstore API is running!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": current_app.config.get("APP_ENV", "dev"),
    }, 200


@bp.get("/api/docs")
def docs():
    """
    Endpoint index
    ---
    tags:
      - Health
    responses:
      200:
        description: Map of every endpoint to a one-line description
    """
    return envelope(
        {"version": "1.0.0", "swagger_ui": "/apidocs/", "endpoints": ENDPOINTS},
        message="Online Bookstore API Documentation",
    )


@bp.get("/")
def root():
    return {
        "success": True,
        "message": "Welcome to the Online Bookstore API",
        "docs": "/apidocs/",
        "health": "/health",
    }, 200
