"""
navcrawler

Recursive site crawler that inventories the links and assets referenced from
each page's header, main content and footer.
"""

__version__ = "1.0.0"
__description__ = "Breadth-first crawler cataloguing header/main/footer references per page"
