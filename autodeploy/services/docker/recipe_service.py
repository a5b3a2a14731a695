"""
Service for Dockerfile synthesis.

Handles:
- Project type to Dockerfile template mapping (registry)
- Template variable substitution
- Build/start command overrides for custom deployments

Rendering is a pure function of (project type, port): no filesystem or
clock access, so the same inputs always yield byte-identical text.
"""
import json
import logging
from typing import Callable, Dict, List, Optional

from autodeploy.models.project_type import ProjectType

logger = logging.getLogger(__name__)

RecipeGenerator = Callable[[int], str]

# Marks the build step of a template; the build command override lands here
BUILD_STEP_MARKER = "# build step"

NGINX_SPA_CONF = (
    "RUN echo 'server { listen {{PORT}}; location / { root /usr/share/nginx/html; "
    "index index.html index.htm; try_files $uri $uri/ /index.html; } }' "
    "> /etc/nginx/conf.d/default.conf"
)

NGINX_STATIC_CONF = (
    "RUN echo 'server { listen {{PORT}}; location / { root /usr/share/nginx/html; "
    "index index.html; } }' > /etc/nginx/conf.d/default.conf"
)


NEXTJS_TEMPLATE = """\
# Next.js Dockerfile
FROM node:20-alpine AS deps
RUN apk add --no-cache libc6-compat
WORKDIR /app
COPY package*.json ./
RUN npm ci

FROM node:20-alpine AS builder
WORKDIR /app
COPY --from=deps /app/node_modules ./node_modules
COPY . .
ENV NEXT_TELEMETRY_DISABLED=1
# build step
RUN npm run build

FROM node:20-alpine AS runner
WORKDIR /app
ENV NODE_ENV=production
ENV NEXT_TELEMETRY_DISABLED=1
COPY --from=builder /app ./
EXPOSE {{PORT}}
ENV PORT={{PORT}}
CMD ["npm", "run", "start"]
"""

SPA_TEMPLATE = """\
# {{DISPLAY_NAME}} Dockerfile
FROM node:20-alpine AS deps
WORKDIR /app
COPY package*.json ./
RUN npm ci

FROM node:20-alpine AS build
WORKDIR /app
COPY --from=deps /app/node_modules ./node_modules
COPY . .
# build step
RUN {{BUILD_COMMAND}}

FROM nginx:alpine
COPY --from=build /app/{{OUTPUT_DIR}} /usr/share/nginx/html
""" + NGINX_SPA_CONF + """
EXPOSE {{PORT}}
CMD ["nginx", "-g", "daemon off;"]
"""

NUXT_TEMPLATE = """\
# Nuxt.js Dockerfile
FROM node:20-alpine AS deps
WORKDIR /app
COPY package*.json ./
RUN npm ci

FROM node:20-alpine AS build
WORKDIR /app
COPY --from=deps /app/node_modules ./node_modules
COPY . .
# build step
RUN npm run build

FROM node:20-alpine
WORKDIR /app
ENV NODE_ENV=production
COPY --from=build /app ./
EXPOSE {{PORT}}
ENV PORT={{PORT}}
ENV NITRO_PORT={{PORT}}
CMD ["npm", "run", "start"]
"""

NODE_BACKEND_TEMPLATE = """\
# Node.js Backend Dockerfile
FROM node:20-alpine AS deps
WORKDIR /app
COPY package*.json ./
RUN npm ci

FROM node:20-alpine AS build
WORKDIR /app
COPY --from=deps /app/node_modules ./node_modules
COPY . .
# build step
RUN npm run build --if-present && npm prune --omit=dev

FROM node:20-alpine
WORKDIR /app
ENV NODE_ENV=production
COPY --from=build /app ./
EXPOSE {{PORT}}
ENV PORT={{PORT}}
CMD ["npm", "start"]
"""

SPRING_BOOT_TEMPLATE = """\
# Spring Boot Dockerfile
FROM maven:3.9-eclipse-temurin-17 AS deps
WORKDIR /app
COPY pom.xml .
RUN mvn -q dependency:go-offline

FROM deps AS build
COPY . .
# build step
RUN mvn -q clean package -DskipTests

FROM eclipse-temurin:17-jre-alpine
WORKDIR /app
COPY --from=build /app/target/*.jar app.jar
EXPOSE {{PORT}}
ENV SERVER_PORT={{PORT}}
ENTRYPOINT ["java", "-Dserver.port={{PORT}}", "-jar", "app.jar"]
"""

MICRONAUT_TEMPLATE = """\
# Micronaut Dockerfile
FROM gradle:8-jdk17 AS deps
WORKDIR /app
COPY . .
RUN gradle dependencies --no-daemon

FROM deps AS build
# build step
RUN gradle build -x test --no-daemon

FROM eclipse-temurin:17-jre-alpine
WORKDIR /app
COPY --from=build /app/build/libs/*-all.jar app.jar
EXPOSE {{PORT}}
ENV MICRONAUT_SERVER_PORT={{PORT}}
ENTRYPOINT ["java", "-jar", "app.jar"]
"""

QUARKUS_TEMPLATE = """\
# Quarkus Native Dockerfile
FROM quay.io/quarkus/ubi-quarkus-mandrel-builder-image:jdk-21 AS deps
WORKDIR /app
COPY --chown=quarkus:quarkus . .
RUN ./mvnw -q dependency:go-offline || mvn -q dependency:go-offline

FROM deps AS build
# build step
RUN ./mvnw package -Pnative -DskipTests || mvn package -Pnative -DskipTests

FROM registry.access.redhat.com/ubi9/ubi-minimal
WORKDIR /app
COPY --from=build /app/target/*-runner /app/application
EXPOSE {{PORT}}
ENV QUARKUS_HTTP_PORT={{PORT}}
CMD ["./application", "-Dquarkus.http.host=0.0.0.0", "-Dquarkus.http.port={{PORT}}"]
"""

PYTHON_DEPS_STAGE = """\
FROM python:3.12-slim AS deps
WORKDIR /app
COPY . .
RUN if [ -f requirements.txt ]; then pip install --no-cache-dir --prefix=/install -r requirements.txt; \\
    elif [ -f pyproject.toml ]; then pip install --no-cache-dir --prefix=/install .; \\
    elif [ -f Pipfile ]; then pip install pipenv && pipenv requirements > /tmp/req.txt \\
        && pip install --no-cache-dir --prefix=/install -r /tmp/req.txt; fi
"""

DJANGO_TEMPLATE = """\
# Django Dockerfile
""" + PYTHON_DEPS_STAGE + """
FROM python:3.12-slim
WORKDIR /app
ENV PYTHONUNBUFFERED=1
ENV PYTHONDONTWRITEBYTECODE=1
COPY --from=deps /install /usr/local
COPY . .
# build step
RUN python manage.py collectstatic --noinput || true
EXPOSE {{PORT}}
ENV PORT={{PORT}}
CMD ["sh", "-c", "python manage.py migrate --noinput || true; gunicorn --bind 0.0.0.0:{{PORT}} $(basename $(dirname $(find . -maxdepth 2 -name wsgi.py | head -n1))).wsgi:application"]
"""

FLASK_TEMPLATE = """\
# Flask Dockerfile
""" + PYTHON_DEPS_STAGE + """
FROM python:3.12-slim
WORKDIR /app
ENV PYTHONUNBUFFERED=1
COPY --from=deps /install /usr/local
COPY . .
RUN pip install --no-cache-dir gunicorn
# build step
EXPOSE {{PORT}}
ENV PORT={{PORT}}
ENV FLASK_APP=app.py
CMD ["gunicorn", "--bind", "0.0.0.0:{{PORT}}", "--workers", "4", "app:app"]
"""

FASTAPI_TEMPLATE = """\
# FastAPI Dockerfile
""" + PYTHON_DEPS_STAGE + """
FROM python:3.12-slim
WORKDIR /app
ENV PYTHONUNBUFFERED=1
COPY --from=deps /install /usr/local
COPY . .
RUN pip install --no-cache-dir "uvicorn[standard]"
# build step
EXPOSE {{PORT}}
ENV PORT={{PORT}}
CMD ["uvicorn", "main:app", "--host", "0.0.0.0", "--port", "{{PORT}}"]
"""

GO_TEMPLATE = """\
# Go Dockerfile
FROM golang:1.22-alpine AS deps
WORKDIR /app
COPY go.mod go.sum* ./
RUN go mod download

FROM deps AS build
COPY . .
# build step
RUN CGO_ENABLED=0 GOOS=linux go build -o /app/main .

FROM alpine:3.19
WORKDIR /app
RUN apk --no-cache add ca-certificates
COPY --from=build /app/main .
EXPOSE {{PORT}}
ENV PORT={{PORT}}
CMD ["./main"]
"""

RAILS_TEMPLATE = """\
# Ruby on Rails Dockerfile
FROM ruby:3.2-alpine AS deps
WORKDIR /app
RUN apk add --no-cache build-base postgresql-dev nodejs yarn tzdata
COPY Gemfile Gemfile.lock* ./
RUN bundle install

FROM deps AS build
COPY . .
# build step
RUN bundle exec rails assets:precompile || true

FROM build
ENV RAILS_ENV=production
ENV RAILS_LOG_TO_STDOUT=1
EXPOSE {{PORT}}
ENV PORT={{PORT}}
CMD ["bundle", "exec", "rails", "server", "-b", "0.0.0.0", "-p", "{{PORT}}"]
"""

LARAVEL_TEMPLATE = """\
# Laravel Dockerfile
FROM composer:2 AS deps
WORKDIR /app
COPY composer.json composer.lock* ./
RUN composer install --no-dev --no-scripts --no-autoloader --prefer-dist

FROM deps AS build
COPY . .
# build step
RUN composer dump-autoload --optimize

FROM php:8.2-cli-alpine
WORKDIR /app
COPY --from=build /app ./
EXPOSE {{PORT}}
ENV PORT={{PORT}}
CMD ["php", "artisan", "serve", "--host=0.0.0.0", "--port={{PORT}}"]
"""

STATIC_TEMPLATE = """\
# Static HTML Dockerfile
FROM alpine:3.19 AS build
WORKDIR /site
COPY . .
RUN rm -rf .git
# build step

FROM nginx:alpine
COPY --from=build /site /usr/share/nginx/html
""" + NGINX_STATIC_CONF + """
EXPOSE {{PORT}}
CMD ["nginx", "-g", "daemon off;"]
"""

HUGO_TEMPLATE = """\
# Hugo Dockerfile
FROM alpine:3.19 AS build
WORKDIR /app
RUN apk add --no-cache hugo git
COPY . .
# build step
RUN hugo --minify

FROM nginx:alpine
COPY --from=build /app/public /usr/share/nginx/html
""" + NGINX_STATIC_CONF + """
EXPOSE {{PORT}}
CMD ["nginx", "-g", "daemon off;"]
"""

JEKYLL_TEMPLATE = """\
# Jekyll Dockerfile
FROM ruby:3.2-alpine AS deps
WORKDIR /app
RUN apk add --no-cache build-base
RUN gem install jekyll bundler
COPY Gemfile* ./
RUN bundle install

FROM deps AS build
COPY . .
# build step
RUN bundle exec jekyll build

FROM nginx:alpine
COPY --from=build /app/_site /usr/share/nginx/html
""" + NGINX_STATIC_CONF + """
EXPOSE {{PORT}}
CMD ["nginx", "-g", "daemon off;"]
"""

GENERIC_TEMPLATE = """\
# Generic Dockerfile
FROM alpine:3.19 AS build
WORKDIR /app
COPY . .
RUN rm -rf .git
# build step

FROM python:3.12-alpine
WORKDIR /app
COPY --from=build /app ./
EXPOSE {{PORT}}
ENV PORT={{PORT}}
CMD ["python", "-m", "http.server", "{{PORT}}"]
"""


def render_template(template: str, variables: Dict[str, object]) -> str:
    """
    Render template with variable substitution.

    Args:
        template: Template text with {{NAME}} placeholders
        variables: Dict of variable names to values

    Returns:
        Rendered template content
    """
    content = template
    for key, value in variables.items():
        placeholder = "{{" + key + "}}"
        content = content.replace(placeholder, str(value))
    return content


def _from_template(template: str, **variables) -> RecipeGenerator:
    def generate(port: int) -> str:
        return render_template(template, {**variables, "PORT": port})
    return generate


# Project type to recipe generator mapping; add types with @register
RECIPE_GENERATORS: Dict[ProjectType, RecipeGenerator] = {
    ProjectType.NEXTJS: _from_template(NEXTJS_TEMPLATE),
    ProjectType.REACT: _from_template(
        SPA_TEMPLATE, DISPLAY_NAME="React", BUILD_COMMAND="npm run build", OUTPUT_DIR="build",
    ),
    ProjectType.VUE: _from_template(
        SPA_TEMPLATE, DISPLAY_NAME="Vue.js", BUILD_COMMAND="npm run build", OUTPUT_DIR="dist",
    ),
    ProjectType.ANGULAR: _from_template(
        SPA_TEMPLATE, DISPLAY_NAME="Angular",
        BUILD_COMMAND="npm run build -- --configuration production", OUTPUT_DIR="dist",
    ),
    ProjectType.SVELTE: _from_template(
        SPA_TEMPLATE, DISPLAY_NAME="Svelte", BUILD_COMMAND="npm run build", OUTPUT_DIR="public",
    ),
    ProjectType.GATSBY: _from_template(
        SPA_TEMPLATE, DISPLAY_NAME="Gatsby", BUILD_COMMAND="npm run build", OUTPUT_DIR="public",
    ),
    ProjectType.NUXT: _from_template(NUXT_TEMPLATE),
    ProjectType.EXPRESS: _from_template(NODE_BACKEND_TEMPLATE),
    ProjectType.NESTJS: _from_template(NODE_BACKEND_TEMPLATE),
    ProjectType.KOA: _from_template(NODE_BACKEND_TEMPLATE),
    ProjectType.SPRING_BOOT: _from_template(SPRING_BOOT_TEMPLATE),
    ProjectType.SPRING_CLOUD: _from_template(SPRING_BOOT_TEMPLATE),
    ProjectType.MICRONAUT: _from_template(MICRONAUT_TEMPLATE),
    ProjectType.QUARKUS: _from_template(QUARKUS_TEMPLATE),
    ProjectType.DJANGO: _from_template(DJANGO_TEMPLATE),
    ProjectType.FLASK: _from_template(FLASK_TEMPLATE),
    ProjectType.FASTAPI: _from_template(FASTAPI_TEMPLATE),
    ProjectType.GO: _from_template(GO_TEMPLATE),
    ProjectType.GIN: _from_template(GO_TEMPLATE),
    ProjectType.RAILS: _from_template(RAILS_TEMPLATE),
    ProjectType.LARAVEL: _from_template(LARAVEL_TEMPLATE),
    ProjectType.STATIC_HTML: _from_template(STATIC_TEMPLATE),
    ProjectType.HUGO: _from_template(HUGO_TEMPLATE),
    ProjectType.JEKYLL: _from_template(JEKYLL_TEMPLATE),
}

GENERIC_GENERATOR: RecipeGenerator = _from_template(GENERIC_TEMPLATE)


def register(project_type: ProjectType) -> Callable[[RecipeGenerator], RecipeGenerator]:
    """Decorator that installs a generator for a project type."""
    def decorator(func: RecipeGenerator) -> RecipeGenerator:
        RECIPE_GENERATORS[project_type] = func
        return func
    return decorator


class RecipeService:
    """
    Service for Dockerfile synthesis.

    Responsibilities:
    - Resolve the generator for a project type (generic fallback)
    - Render recipes for a port
    - Apply build/start command overrides
    """

    def __init__(self, generators: Optional[Dict[ProjectType, RecipeGenerator]] = None):
        """
        Initialize RecipeService.

        Args:
            generators: Registry to render from (defaults to the module registry)
        """
        self.generators = generators if generators is not None else RECIPE_GENERATORS

    def render(self, project_type: ProjectType, port: int) -> str:
        """
        Render the Dockerfile for a project type and listening port.

        Args:
            project_type: Detected or requested project type
            port: Port the application listens on inside the container

        Returns:
            Dockerfile text
        """
        generator = self.generators.get(project_type)
        if generator is None:
            logger.warning(f"No recipe for project type '{project_type.value}', falling back to generic")
            generator = GENERIC_GENERATOR
        return generator(port)

    def render_with_overrides(
        self,
        project_type: ProjectType,
        port: int,
        build_command: Optional[str] = None,
        start_command: Optional[str] = None,
    ) -> str:
        """
        Render a recipe, then substitute caller-supplied commands.

        The build command replaces the RUN step under the recipe's build
        step marker, or is inserted there when the template has no build of
        its own. Dependency stages are left alone. The start command
        replaces the final CMD/ENTRYPOINT and runs through a shell.
        """
        recipe = self.render(project_type, port)
        lines = recipe.splitlines()

        if build_command:
            lines = _replace_build_step(lines, build_command)

        if start_command:
            for index in range(len(lines) - 1, -1, -1):
                if lines[index].startswith(("CMD ", "ENTRYPOINT ")):
                    lines[index] = "CMD " + json.dumps(["sh", "-c", start_command])
                    break

        return "\n".join(lines) + "\n"


def _replace_build_step(lines: List[str], build_command: str) -> List[str]:
    build_line = f"RUN {build_command}"
    try:
        marker = lines.index(BUILD_STEP_MARKER)
    except ValueError:
        # Unmarked recipe (registered generator); build right before the runtime command
        for index in range(len(lines) - 1, -1, -1):
            if lines[index].startswith(("CMD ", "ENTRYPOINT ")):
                return lines[:index] + [build_line] + lines[index:]
        return lines + [build_line]

    # The marked RUN step (with its continuation lines) is replaced; otherwise insert
    end = marker + 1
    if end < len(lines) and lines[end].startswith("RUN "):
        while lines[end].endswith("\\") and end + 1 < len(lines):
            end += 1
        end += 1
    return lines[:marker + 1] + [build_line] + lines[end:]
