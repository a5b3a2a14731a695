"""
Project types recognised by the classifier.

Each member carries its display name, runtime family and the port the
framework listens on by default.
"""
from enum import Enum
from typing import Optional


class ProjectType(str, Enum):
    """Repository language/framework classification."""

    # Frontend frameworks
    NEXTJS = "nextjs"
    REACT = "react"
    VUE = "vue"
    ANGULAR = "angular"
    SVELTE = "svelte"
    NUXT = "nuxt"

    # Java
    SPRING_BOOT = "spring-boot"
    SPRING_CLOUD = "spring-cloud"
    MICRONAUT = "micronaut"
    QUARKUS = "quarkus"

    # Python
    DJANGO = "django"
    FLASK = "flask"
    FASTAPI = "fastapi"

    # Node backends
    EXPRESS = "express"
    NESTJS = "nestjs"
    KOA = "koa"

    # Go
    GO = "go"
    GIN = "gin"

    # Other backends
    RAILS = "rails"
    LARAVEL = "laravel"

    # Static sites
    STATIC_HTML = "static-html"
    GATSBY = "gatsby"
    HUGO = "hugo"
    JEKYLL = "jekyll"

    UNKNOWN = "unknown"

    @property
    def tag(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return _METADATA[self][0]

    @property
    def runtime_family(self) -> str:
        return _METADATA[self][1]

    @property
    def default_port(self) -> int:
        return _METADATA[self][2]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ProjectType"]:
        """
        Resolve a tag or member name ("spring-boot", "SPRING_BOOT") to a type.

        Returns None for empty input; raises ValueError for unknown names.
        """
        if not value:
            return None
        normalized = value.strip().lower().replace("_", "-")
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown project type: {value}")


# (display name, runtime family, default port)
_METADATA = {
    ProjectType.NEXTJS: ("Next.js", "node", 3000),
    ProjectType.REACT: ("React", "node", 3000),
    ProjectType.VUE: ("Vue.js", "node", 8080),
    ProjectType.ANGULAR: ("Angular", "node", 4200),
    ProjectType.SVELTE: ("Svelte", "node", 5000),
    ProjectType.NUXT: ("Nuxt.js", "node", 3000),
    ProjectType.SPRING_BOOT: ("Spring Boot", "java", 8080),
    ProjectType.SPRING_CLOUD: ("Spring Cloud", "java", 8080),
    ProjectType.MICRONAUT: ("Micronaut", "java", 8080),
    ProjectType.QUARKUS: ("Quarkus", "java", 8080),
    ProjectType.DJANGO: ("Django", "python", 8000),
    ProjectType.FLASK: ("Flask", "python", 5000),
    ProjectType.FASTAPI: ("FastAPI", "python", 8000),
    ProjectType.EXPRESS: ("Express.js", "node", 3000),
    ProjectType.NESTJS: ("NestJS", "node", 3000),
    ProjectType.KOA: ("Koa", "node", 3000),
    ProjectType.GO: ("Go", "go", 8080),
    ProjectType.GIN: ("Gin", "go", 8080),
    ProjectType.RAILS: ("Ruby on Rails", "ruby", 3000),
    ProjectType.LARAVEL: ("Laravel", "php", 8000),
    ProjectType.STATIC_HTML: ("Static HTML", "static", 80),
    ProjectType.GATSBY: ("Gatsby", "node", 8000),
    ProjectType.HUGO: ("Hugo", "go", 1313),
    ProjectType.JEKYLL: ("Jekyll", "ruby", 4000),
    ProjectType.UNKNOWN: ("Unknown", "unknown", 8080),
}
