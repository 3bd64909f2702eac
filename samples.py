from __future__ import annotations

from typing import Any, Dict, List, Sequence

from models import Book, Category

_GITHUB_PAGES = """
# Deploying to GitHub Pages

GitHub Pages is a popular static hosting service for developers.

## Main steps
1. Make sure the project has an `index.html` file at its root.
2. Open the **Settings** tab of the GitHub repository.
3. Pick **Pages** in the left sidebar.
4. Select the `main` branch and the `/(root)` folder, then click **Save**.

### Connecting a custom domain
To serve the site from your own domain (for example `www.techtutorial.id`):

- Add a `CNAME` file at the root of the repository containing the domain.
- Point an **A record** at your DNS provider to the GitHub address (185.199.108.153).

![GitHub Pages workflow](https://images.unsplash.com/photo-1618401471353-b98afee0b2eb?q=80&w=800&auto=format&fit=crop)

### Companion video
A short walkthrough of a CI/CD flow into GitHub Pages:

<div class="aspect-video w-full my-6">
  <iframe src="https://www.youtube.com/embed/2hLBe659cs0" frameborder="0" allowfullscreen></iframe>
</div>

---
*Tip: always serve the site over HTTPS.*
"""

_PYTHON_BASICS = """
# Python Fundamentals

Python is a high-level language that puts code readability first.

## Why Python?
- Syntax that reads close to English.
- A very large ecosystem of libraries.
- Widely used for **Data Science** and **Backend Development**.

## Basic structure
A small example of everyday logic:

```python
# Average score for a class
def average(scores):
    total = sum(scores)
    return total / len(scores)

scores = [80, 90, 75, 85, 95]
result = average(scores)

print(f"Average: {result}")
if result >= 80:
    print("Status: Very good")
else:
    print("Status: Needs work")
```

### Collection types
1. **List**: `[1, 2, 3]` (mutable)
2. **Tuple**: `(1, 2, 3)` (immutable)
3. **Dictionary**: `{"name": "Andi"}` (key-value)

> "Programming is not about what you know; it's about what you can figure out."
"""

SAMPLE_BOOKS: List[Book] = [
    Book(
        id="1",
        title="Building Apps with GitHub Pages & Custom DNS",
        description=(
            "A complete guide to deploying a front-end app to GitHub Pages and "
            "wiring it to a custom domain."
        ),
        category=Category.DEVOPS,
        content=_GITHUB_PAGES,
        is_local=True,
    ),
    Book(
        id="2",
        title="Python Basics & Fundamentals",
        description=(
            "The core ideas of Python, from variables and data types to control "
            "flow, for anyone starting out as a developer."
        ),
        category=Category.PROGRAMMING,
        content=_PYTHON_BASICS,
        is_local=True,
    ),
]


def sample_books() -> List[Book]:
    return list(SAMPLE_BOOKS)


def seed_rows(samples: Sequence[Book]) -> List[Dict[str, Any]]:
    """Rows for inserting samples as new records: no sentinel id, no local flag."""
    rows = []
    for book in samples:
        row = book.to_row()
        row["is_hidden"] = False
        rows.append(row)
    return rows
