import os
import time
from dotenv import load_dotenv
from fastapi import FastAPI, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
import uvicorn
from typing import Dict, List, Optional, Any

from src.database.models import ColumnSpec, CreateTableRequest
from src.services.data_library import DataLibrarySystem
from src.utils.errors import DataLibraryError, NetworkError
from src.utils.logger import setup_logger
from src.utils.rate_limiter import RateLimiter

load_dotenv()

logger = setup_logger("DataLibraryServer")


# Request Models
class ColumnModel(BaseModel):
    column_name: str
    data_type: str
    is_nullable: bool = True
    column_default: Optional[Any] = None
    is_primary_key: bool = False

class ConstraintModel(BaseModel):
    constraint_type: str
    column_names: List[str] = Field(default_factory=list)
    foreign_table: Optional[str] = None
    foreign_columns: List[str] = Field(default_factory=list)
    check_clause: Optional[str] = None

class CreateTableModel(BaseModel):
    table_name: str
    columns: List[ColumnModel]
    constraints: List[ConstraintModel] = Field(default_factory=list)
    is_system_table: bool = False


def create_app(system: Optional[DataLibrarySystem] = None,
               rate_limiter: Optional[RateLimiter] = None) -> FastAPI:
    """Build the API around a wired data library system.

    Without a system one is created from the environment and connected to the
    configured database on first use.
    """
    app = FastAPI(title="Data Library Server", version="0.1.0")
    app.state.system = system
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            max_requests=int(os.getenv('RATE_LIMIT_REQUESTS', 120)),
            window_seconds=float(os.getenv('RATE_LIMIT_WINDOW', 60))
        )
    app.state.rate_limiter = rate_limiter

    @app.exception_handler(DataLibraryError)
    async def handle_data_library_error(request: Request, exc: DataLibraryError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    def get_data_library(request: Request) -> DataLibrarySystem:
        system = request.app.state.system
        if system is None:
            system = DataLibrarySystem()
            system.connect_database()
            request.app.state.system = system
        if not system.connected:
            raise NetworkError("Database is not connected")
        return system

    def caller_identity(request: Request) -> str:
        """Who is calling; authentication plugs in here"""
        caller = request.headers.get('X-Caller-Id')
        if caller:
            return caller
        return request.client.host if request.client else 'anonymous'

    def rate_limit(request: Request, identity: str = Depends(caller_identity)):
        request.app.state.rate_limiter.check(identity)
        return identity

    limited = [Depends(rate_limit)]

    @app.get("/status")
    def status(request: Request):
        """Get system status"""
        system = request.app.state.system
        info = system.get_status() if system is not None else {'database_connected': False}
        return {
            "status": "running",
            **info,
            "timestamp": time.time()
        }

    @app.get("/tables", dependencies=limited)
    def list_tables(search: Optional[str] = Query(None),
                    system: DataLibrarySystem = Depends(get_data_library)):
        tables = system.introspector.get_all_tables(search)
        return {"success": True, "tables": [table.to_dict() for table in tables]}

    @app.get("/tables/{table_name}", dependencies=limited)
    def get_table(table_name: str, system: DataLibrarySystem = Depends(get_data_library)):
        schema = system.introspector.get_table_schema(table_name)
        return {"success": True, "schema": schema.to_dict()}

    @app.post("/tables", dependencies=limited)
    def create_table(req: CreateTableModel, system: DataLibrarySystem = Depends(get_data_library)):
        system.mutator.create_table(CreateTableRequest.from_dict(req.model_dump()))
        return {"success": True, "message": f"Table '{req.table_name}' created successfully"}

    @app.delete("/tables/{table_name}", dependencies=limited)
    def drop_table(table_name: str, system: DataLibrarySystem = Depends(get_data_library)):
        system.mutator.drop_table(table_name)
        return {"success": True, "message": f"Table '{table_name}' dropped successfully"}

    @app.post("/tables/{table_name}/columns", dependencies=limited)
    def add_column(table_name: str, req: ColumnModel,
                   system: DataLibrarySystem = Depends(get_data_library)):
        system.mutator.add_column(table_name, ColumnSpec.from_dict(req.model_dump()))
        return {"success": True, "message": f"Column '{req.column_name}' added to '{table_name}'"}

    @app.delete("/tables/{table_name}/columns/{column_name}", dependencies=limited)
    def drop_column(table_name: str, column_name: str,
                    system: DataLibrarySystem = Depends(get_data_library)):
        system.mutator.drop_column(table_name, column_name)
        return {"success": True, "message": f"Column '{column_name}' dropped from '{table_name}'"}

    @app.get("/tables/{table_name}/rows", dependencies=limited)
    def get_rows(table_name: str, page: int = Query(1), limit: Optional[int] = Query(None),
                 system: DataLibrarySystem = Depends(get_data_library)):
        result = system.row_store.get_page(table_name, page, limit)
        return {"success": True, **result.to_dict()}

    @app.post("/tables/{table_name}/rows", dependencies=limited)
    def insert_row(table_name: str, data: Dict[str, Any],
                   system: DataLibrarySystem = Depends(get_data_library)):
        row = system.row_store.insert_row(table_name, data)
        return {"success": True, "row": row}

    @app.put("/tables/{table_name}/rows/{row_id}", dependencies=limited)
    def update_row(table_name: str, row_id: str, data: Dict[str, Any],
                   system: DataLibrarySystem = Depends(get_data_library)):
        row = system.row_store.update_row(table_name, row_id, data)
        return {"success": True, "message": "Row updated successfully", "row": row}

    @app.delete("/tables/{table_name}/rows/{row_id}", dependencies=limited)
    def delete_row(table_name: str, row_id: str,
                   system: DataLibrarySystem = Depends(get_data_library)):
        if not system.row_store.delete_row(table_name, row_id):
            return JSONResponse(status_code=404, content={
                "success": False, "error": "NotFound", "message": f"Row {row_id} not found"
            })
        return {"success": True}

    @app.get("/tables/{table_name}/export", dependencies=limited)
    def export_table(table_name: str, system: DataLibrarySystem = Depends(get_data_library)):
        content = system.row_store.export_csv(table_name)
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{table_name}.csv"'}
        )

    @app.get("/relationships", dependencies=limited)
    def relationships(system: DataLibrarySystem = Depends(get_data_library)):
        analysis = system.introspector.get_relationships()
        return {"success": True, **analysis}

    return app


app = create_app()


def run():
    """Run the data library server"""
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8080)))

if __name__ == "__main__":
    run()
